"""
Unit of Work pattern for transaction coordination.

Provides a clean way to work with multiple repositories within a single transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from parcelwatch.db.connection import DatabaseConnection
from parcelwatch.db.repositories.delivered import DeliveredRepository
from parcelwatch.db.repositories.journey import JourneyRepository
from parcelwatch.db.repositories.order import OrderRepository
from parcelwatch.db.repositories.session import SessionRepository

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class UnitOfWork:
    """
    Unit of Work for managing database transactions.

    Coordinates multiple repositories within a single transaction,
    ensuring atomic operations with automatic rollback.

    Usage:
        with UnitOfWork() as uow:
            uow.delivered.archive(order, DeliveryChannel.SPX)
            uow.orders.delete_by_id(order.id)
            uow.commit()  # Explicit commit

        # Auto-rollback on exception:
        with UnitOfWork() as uow:
            uow.sessions.update_status(session_id, SessionStatus.DISABLED)
            raise Exception("Something went wrong")
            # Transaction is automatically rolled back
    """

    def __init__(self):
        self._session: Session | None = None
        self._sessions: SessionRepository | None = None
        self._orders: OrderRepository | None = None
        self._delivered: DeliveredRepository | None = None
        self._journeys: JourneyRepository | None = None

    def __enter__(self) -> UnitOfWork:
        self._session = DatabaseConnection.get_session()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.rollback()
        self._close()
        return False  # Don't suppress exceptions

    @property
    def session(self) -> Session:
        """Get current session (raises if not in context)."""
        if self._session is None:
            raise RuntimeError("UnitOfWork must be used within a context manager")
        return self._session

    @property
    def sessions(self) -> SessionRepository:
        """Marketplace session repository for this unit of work."""
        if self._sessions is None:
            self._sessions = SessionRepository(self.session)
        return self._sessions

    @property
    def orders(self) -> OrderRepository:
        """Active order repository for this unit of work."""
        if self._orders is None:
            self._orders = OrderRepository(self.session)
        return self._orders

    @property
    def delivered(self) -> DeliveredRepository:
        """Delivered archive repository for this unit of work."""
        if self._delivered is None:
            self._delivered = DeliveredRepository(self.session)
        return self._delivered

    @property
    def journeys(self) -> JourneyRepository:
        """Tracking journey repository for this unit of work."""
        if self._journeys is None:
            self._journeys = JourneyRepository(self.session)
        return self._journeys

    def commit(self):
        """Commit the current transaction."""
        self.session.commit()

    def rollback(self):
        """Rollback the current transaction."""
        self.session.rollback()

    def _close(self):
        """Close the session."""
        if self._session is not None:
            self._session.close()
            self._session = None
            self._sessions = None
            self._orders = None
            self._delivered = None
            self._journeys = None
