"""
pytest configuration and fixtures.

Loads environment variables from .env file for all tests and provides an
in-memory SQLite database for tests that exercise the real repositories.
"""

from pathlib import Path

import pytest
from dotenv import load_dotenv

from parcelwatch.db import DatabaseConnection
from parcelwatch.db.tables import metadata


def pytest_configure(config):
    """Load .env file before running tests"""
    # Find the project root (where .env is located)
    project_root = Path(__file__).parent.parent
    env_file = project_root / ".env"

    if env_file.exists():
        print(f"Loading environment from {env_file}")
        load_dotenv(env_file)
    else:
        print(f"Warning: .env file not found at {env_file}")


@pytest.fixture
def database():
    """Fresh in-memory database with the full schema."""
    DatabaseConnection.close()
    DatabaseConnection.initialize(database_url="sqlite://")
    metadata.create_all(DatabaseConnection.get_engine())
    yield DatabaseConnection
    DatabaseConnection.close()
