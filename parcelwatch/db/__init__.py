"""
parcelwatch database module.

Provides database connection management and repositories for data persistence.
Uses SQLAlchemy Core with Cloud SQL Python Connector.
"""

from parcelwatch.db.connection import DatabaseConnection
from parcelwatch.db.errors import StoreTimeoutError
from parcelwatch.db.unit_of_work import UnitOfWork

__all__ = ["DatabaseConnection", "StoreTimeoutError", "UnitOfWork"]
