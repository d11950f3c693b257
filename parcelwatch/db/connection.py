"""
Database connection management.

Production runs on Cloud SQL through the Cloud SQL Python Connector with IAM
authentication. Any SQLAlchemy URL can be used instead through DATABASE_URL
(local PostgreSQL, in-memory SQLite for tests).
"""

from contextlib import contextmanager
from typing import Generator

from google.cloud.sql.connector import Connector
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from parcelwatch import config


class DatabaseConnection:
    """
    Process-wide engine and session factory.

    Usage:
        # Initialize at app startup
        DatabaseConnection.initialize()

        with DatabaseConnection.session() as session:
            session.execute(...)

        # Close at app shutdown
        DatabaseConnection.close()
    """

    _engine: Engine | None = None
    _connector: Connector | None = None
    _session_factory: sessionmaker | None = None
    _initialized: bool = False

    @classmethod
    def initialize(
        cls,
        database_url: str | None = None,
        instance_connection_name: str | None = None,
        db_name: str | None = None,
        db_user: str | None = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
    ):
        """
        Initialize the database connection pool.

        A database URL (argument or DATABASE_URL) takes precedence over the
        Cloud SQL settings.

        Args:
            database_url: SQLAlchemy URL
            instance_connection_name: Cloud SQL instance (project:region:instance)
            db_name: Database name
            db_user: Database user (service account email for IAM auth)
            pool_size: Base connection pool size
            max_overflow: Additional connections allowed beyond pool_size
            pool_timeout: Seconds to wait for a connection
            pool_recycle: Recycle connections after this many seconds
        """
        if cls._initialized:
            return

        database_url = database_url or config.DATABASE_URL
        if database_url:
            cls._engine = cls._create_url_engine(
                database_url, pool_size, max_overflow, pool_timeout, pool_recycle
            )
        else:
            cls._engine = cls._create_cloud_sql_engine(
                instance_connection_name or config.INSTANCE_CONNECTION_NAME,
                db_name or config.DB_NAME,
                db_user or config.DB_USER,
                pool_size,
                max_overflow,
                pool_timeout,
                pool_recycle,
            )

        cls._session_factory = sessionmaker(bind=cls._engine)
        cls._initialized = True

    @classmethod
    def _create_url_engine(
        cls,
        database_url: str,
        pool_size: int,
        max_overflow: int,
        pool_timeout: int,
        pool_recycle: int,
    ) -> Engine:
        if database_url.startswith("sqlite"):
            # One shared connection so in-memory databases survive across sessions
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        return create_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
        )

    @classmethod
    def _create_cloud_sql_engine(
        cls,
        instance_connection_name: str | None,
        db_name: str,
        db_user: str | None,
        pool_size: int,
        max_overflow: int,
        pool_timeout: int,
        pool_recycle: int,
    ) -> Engine:
        if not instance_connection_name:
            raise ValueError(
                "DATABASE_URL or INSTANCE_CONNECTION_NAME environment variable "
                "is required. Format: project:region:instance"
            )

        if not db_user:
            raise ValueError(
                "DB_USER environment variable is required. "
                "Should be service account email for IAM auth."
            )

        cls._connector = Connector()

        def getconn():
            assert cls._connector is not None
            return cls._connector.connect(
                instance_connection_name,
                "pg8000",
                user=db_user,
                db=db_name,
                enable_iam_auth=True,
            )

        return create_engine(
            "postgresql+pg8000://",
            creator=getconn,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,  # Verify connections before use
        )

    @classmethod
    def get_engine(cls) -> Engine:
        """Get the SQLAlchemy engine."""
        if not cls._initialized or cls._engine is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )
        return cls._engine

    @classmethod
    @contextmanager
    def session(cls) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Commits on success and rolls back on exception.
        """
        session = cls.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @classmethod
    def close(cls):
        """Close the connection pool and connector."""
        if cls._engine:
            cls._engine.dispose()
            cls._engine = None

        if cls._connector:
            cls._connector.close()
            cls._connector = None

        cls._session_factory = None
        cls._initialized = False

    @classmethod
    def is_initialized(cls) -> bool:
        """Check if the database connection is initialized."""
        return cls._initialized

    @classmethod
    def is_postgresql(cls) -> bool:
        """Whether the engine talks to PostgreSQL."""
        return cls.get_engine().dialect.name == "postgresql"

    @classmethod
    def get_session(cls) -> Session:
        """
        Get a new database session.

        The caller is responsible for committing/rolling back and closing the
        session. Prefer the session() context manager or UnitOfWork.
        """
        if not cls._initialized or cls._session_factory is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )

        return cls._session_factory()
