"""
Base repository with common CRUD operations.

Provides generic database operations that can be inherited by specific repositories.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Sequence, TypeVar

from pydantic import BaseModel
from sqlalchemy import Column, Table, delete, select, text, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from parcelwatch.config import STORE_QUERY_TIMEOUT_SECONDS
from parcelwatch.db.errors import StoreTimeoutError

ModelT = TypeVar("ModelT", bound=BaseModel)

# SQLSTATE for query_canceled
PG_QUERY_CANCELED = "57014"


def model_to_jsonb(model: BaseModel | None) -> dict | None:
    """Serialize Pydantic model for JSONB storage."""
    if model is None:
        return None
    return model.model_dump(mode="json")


def models_to_jsonb(models: Sequence[BaseModel]) -> list[dict]:
    """Serialize list of Pydantic models for JSONB storage."""
    return [m.model_dump(mode="json") for m in models]


def jsonb_to_model(data: dict | None, model_class: type[ModelT]) -> ModelT | None:
    """Deserialize JSONB to Pydantic model."""
    if data is None:
        return None
    return model_class.model_validate(data)


def jsonb_to_models(data: list[dict] | None, model_class: type[ModelT]) -> list[ModelT]:
    """Deserialize JSONB array to list of Pydantic models."""
    if data is None:
        return []
    return [model_class.model_validate(d) for d in data]


def is_statement_timeout(error: OperationalError) -> bool:
    """Whether a DBAPI error is a PostgreSQL statement timeout."""
    message = str(error.orig or error).lower()
    return "statement timeout" in message or PG_QUERY_CANCELED in message


class BaseRepository(ABC, Generic[ModelT]):
    """
    Base repository with common CRUD operations.

    Subclasses must implement:
    - table property: Return the SQLAlchemy Table
    - _row_to_model: Convert database row to Pydantic model
    - _model_to_dict: Convert Pydantic model to database dict
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def table(self) -> Table:
        """SQLAlchemy table for this repository."""
        pass

    @property
    def key(self) -> Column:
        """Primary key column (``id`` unless overridden)."""
        return self.table.c.id

    @abstractmethod
    def _row_to_model(self, row: Any) -> ModelT:
        """Convert database row to Pydantic model."""
        pass

    @abstractmethod
    def _model_to_dict(self, model: ModelT) -> dict:
        """Convert Pydantic model to database dict."""
        pass

    def get_by_id(self, id: str) -> ModelT | None:
        """
        Get entity by primary key.

        Returns:
            Pydantic model or None if not found
        """
        stmt = select(self.table).where(self.key == id)
        row = self.session.execute(stmt).fetchone()

        if row is None:
            return None

        return self._row_to_model(row)

    def create(self, model: ModelT) -> ModelT:
        """
        Create new entity.

        Returns:
            Created model with database-generated fields
        """
        data = self._model_to_dict(model)
        stmt = self.table.insert().values(**data).returning(self.table)
        row = self.session.execute(stmt).fetchone()
        return self._row_to_model(row)

    def update_by_id(self, id: str, **kwargs) -> bool:
        """
        Update entity by primary key with specific fields.

        Returns:
            True if entity was updated, False if not found
        """
        stmt = update(self.table).where(self.key == id).values(**kwargs)
        result = self.session.execute(stmt)
        return result.rowcount > 0

    def delete_by_id(self, id: str) -> bool:
        """
        Delete entity by primary key.

        Returns:
            True if entity was deleted, False if not found
        """
        stmt = delete(self.table).where(self.key == id)
        result = self.session.execute(stmt)
        return result.rowcount > 0

    def _execute_with_timeout(self, stmt, timeout: float = STORE_QUERY_TIMEOUT_SECONDS):
        """
        Execute a read bounded by a deadline.

        On PostgreSQL the deadline is enforced server side with a
        transaction-local statement_timeout.

        Raises:
            StoreTimeoutError: Statement timeout or connection pool exhaustion
        """
        try:
            if self.session.get_bind().dialect.name == "postgresql":
                self.session.execute(
                    text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}")
                )
            return self.session.execute(stmt)
        except PoolTimeoutError as e:
            raise StoreTimeoutError("Timed out waiting for a database connection") from e
        except OperationalError as e:
            if is_statement_timeout(e):
                raise StoreTimeoutError(f"Query exceeded {timeout}s") from e
            raise
