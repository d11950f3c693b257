"""
Marketplace session repository.

Handles credential lifecycle rows (pending, active, disabled).
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import Table, func, select

from parcelwatch.db.repositories.base import BaseRepository
from parcelwatch.db.tables import marketplace_sessions
from parcelwatch.models.session import MarketplaceSession, SessionStatus


class SessionRepository(BaseRepository[MarketplaceSession]):
    """Repository for MarketplaceSession operations."""

    @property
    def table(self) -> Table:
        return marketplace_sessions

    def _row_to_model(self, row: Any) -> MarketplaceSession:
        """Convert database row to MarketplaceSession model."""
        return MarketplaceSession(
            id=row.id,
            credential=row.credential,
            status=SessionStatus(row.status),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _model_to_dict(self, model: MarketplaceSession) -> dict:
        """Convert MarketplaceSession model to database dict."""
        now = datetime.now(timezone.utc)
        return {
            "id": model.id or str(uuid4()),
            "credential": model.credential,
            "status": model.status.value,
            "created_at": model.created_at or now,
            "updated_at": now,
        }

    def get_by_status(self, status: SessionStatus) -> list[MarketplaceSession]:
        """
        Get sessions in a lifecycle status, oldest first.

        The ordering is stable so batches are formed deterministically.
        """
        stmt = (
            select(self.table)
            .where(self.table.c.status == status.value)
            .order_by(self.table.c.created_at, self.table.c.id)
        )
        result = self.session.execute(stmt)
        return [self._row_to_model(row) for row in result.fetchall()]

    def list_all(self) -> list[MarketplaceSession]:
        """Get every session, oldest first."""
        stmt = select(self.table).order_by(self.table.c.created_at, self.table.c.id)
        result = self.session.execute(stmt)
        return [self._row_to_model(row) for row in result.fetchall()]

    def update_status(self, session_id: str, status: SessionStatus) -> bool:
        """
        Move a session to a new lifecycle status.

        Returns:
            True if the session exists
        """
        return self.update_by_id(
            session_id, status=status.value, updated_at=datetime.now(timezone.utc)
        )

    def count_by_status(self) -> dict[SessionStatus, int]:
        """Count sessions per status (statuses without rows count as 0)."""
        stmt = select(self.table.c.status, func.count()).group_by(self.table.c.status)
        counts = {status: 0 for status in SessionStatus}
        for status, count in self.session.execute(stmt).fetchall():
            counts[SessionStatus(status)] = count
        return counts
