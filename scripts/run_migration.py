"""
Run database migrations for parcelwatch.

Applies SQL migration files either to the database named by DATABASE_URL or
to the Cloud SQL PostgreSQL instance (Cloud SQL Python Connector, IAM auth).
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from google.cloud.sql.connector import Connector
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

# Load environment variables
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
INSTANCE_CONNECTION_NAME = os.getenv(
    "INSTANCE_CONNECTION_NAME"
)  # Format: project:region:instance
DB_NAME = os.getenv("DB_NAME", "parcelwatch")
DB_USER = os.getenv("DB_USER", "postgres")  # Service account email for IAM

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

connector: Connector | None = None


def getconn():
    """Create a connection through the Cloud SQL connector with IAM auth."""
    global connector
    if not INSTANCE_CONNECTION_NAME:
        print("❌ Neither DATABASE_URL nor INSTANCE_CONNECTION_NAME is set")
        print("   Example: my-project:asia-southeast1:parcelwatch-db")
        sys.exit(1)

    connector = connector or Connector()
    try:
        return connector.connect(
            INSTANCE_CONNECTION_NAME,
            "pg8000",
            user=DB_USER,
            db=DB_NAME,
            enable_iam_auth=True,
        )
    except Exception as e:
        print(f"❌ Failed to connect to Cloud SQL: {e}")
        sys.exit(1)


def get_engine() -> Engine:
    """Engine for DATABASE_URL, or Cloud SQL when it is unset."""
    if DATABASE_URL:
        return create_engine(DATABASE_URL)
    return create_engine("postgresql+pg8000://", creator=getconn)


def run_migration(migration_file: Path, engine: Engine):
    """Run a single migration file in one transaction."""
    print(f"📝 Running migration: {migration_file.name}")

    sql = migration_file.read_text()
    try:
        with engine.begin() as conn:
            conn.execute(text(sql))
        print(f"✅ Migration {migration_file.name} completed successfully")
    except Exception as e:
        print(f"❌ Migration {migration_file.name} failed: {e}")
        sys.exit(1)


def list_migrations() -> list[Path]:
    """List migration files in apply order (rollback files excluded)."""
    return [
        m for m in sorted(MIGRATIONS_DIR.glob("*.sql")) if "rollback" not in m.name.lower()
    ]


def main():
    print("🚀 parcelwatch Database Migration Tool")
    print("=" * 50)

    if not MIGRATIONS_DIR.exists():
        print(f"❌ Migrations directory not found: {MIGRATIONS_DIR}")
        sys.exit(1)

    if len(sys.argv) > 1:
        migration_file = Path(sys.argv[1])
        if not migration_file.exists():
            migration_file = MIGRATIONS_DIR / sys.argv[1]
        if not migration_file.exists():
            print(f"❌ Migration file not found: {sys.argv[1]}")
            sys.exit(1)
        migrations = [migration_file]
    else:
        migrations = list_migrations()

    if not migrations:
        print("⚠️  No migrations found")
        sys.exit(0)

    print(f"\nFound {len(migrations)} migration(s):")
    for migration in migrations:
        print(f"  - {migration.name}")

    print("\n⚠️  This will apply migrations to:")
    if DATABASE_URL:
        print(f"   URL: {DATABASE_URL.split('@')[-1]}")
    else:
        print(f"   Instance: {INSTANCE_CONNECTION_NAME}")
        print(f"   Database: {DB_NAME}")
        print(f"   User: {DB_USER}")

    response = input("\nProceed? (yes/no): ").strip().lower()
    if response not in ["yes", "y"]:
        print("❌ Migration cancelled")
        sys.exit(0)

    engine = get_engine()

    print("\n" + "=" * 50)
    for migration in migrations:
        run_migration(migration, engine)

    engine.dispose()
    if connector is not None:
        connector.close()

    print("\n" + "=" * 50)
    print("✅ All migrations completed successfully!")


if __name__ == "__main__":
    main()
