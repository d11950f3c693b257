"""
Delivered archive repository.

The archive holds one immutable-by-default snapshot per finalized order.
Administrative edits go through DeliveredUpdate.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import Table, and_, delete, func, or_, select

from parcelwatch.db.repositories.base import BaseRepository, model_to_jsonb
from parcelwatch.db.tables import delivered_orders
from parcelwatch.models.order import (
    DeliveredPage,
    DeliveredRecord,
    DeliveredUpdate,
    DeliveryChannel,
    OrderRecord,
)


class DeliveredRepository(BaseRepository[DeliveredRecord]):
    """Repository for DeliveredRecord operations."""

    @property
    def table(self) -> Table:
        return delivered_orders

    def _row_to_model(self, row: Any) -> DeliveredRecord:
        """Convert database row to DeliveredRecord model."""
        return DeliveredRecord(
            id=row.id,
            order_id=row.order_id,
            order=OrderRecord.model_validate(row.order_snapshot),
            delivered_via=DeliveryChannel(row.delivered_via),
            delivered_at=row.delivered_at,
        )

    def _model_to_dict(self, model: DeliveredRecord) -> dict:
        """Convert DeliveredRecord model to database dict."""
        return {
            "id": model.id or str(uuid4()),
            "order_id": model.order_id,
            "order_snapshot": model_to_jsonb(model.order),
            "delivered_via": model.delivered_via.value,
            "delivered_at": model.delivered_at or datetime.now(timezone.utc),
        }

    def archive(self, order: OrderRecord, channel: DeliveryChannel) -> DeliveredRecord:
        """
        Store a delivery snapshot of an order.

        Args:
            order: Order as it stands at delivery time
            channel: Subsystem that detected the delivery

        Returns:
            The archived record
        """
        return self.create(
            DeliveredRecord(
                id=str(uuid4()),
                order_id=order.id,
                order=order,
                delivered_via=channel,
            )
        )

    def exists_for_order(self, order_id: str) -> bool:
        """Whether an order has already been archived."""
        stmt = select(self.table.c.id).where(self.table.c.order_id == order_id)
        return self.session.execute(stmt).first() is not None

    def get_by_order_id(self, order_id: str) -> DeliveredRecord | None:
        """Get the archive entry of an order."""
        stmt = select(self.table).where(self.table.c.order_id == order_id)
        row = self.session.execute(stmt).fetchone()
        return self._row_to_model(row) if row else None

    def get_page(
        self,
        cursor: datetime | None = None,
        cursor_id: str | None = None,
        limit: int = 20,
    ) -> DeliveredPage:
        """
        Get a reverse-chronological page of the archive.

        Args:
            cursor: ``delivered_at`` of the last record of the previous page
            cursor_id: ``id`` of that record, breaks ties on ``delivered_at``
            limit: Page size

        Returns:
            DeliveredPage with ``next_cursor``/``next_cursor_id`` set when more
            records exist

        Raises:
            StoreTimeoutError: The query exceeded its deadline
        """
        stmt = select(self.table)
        if cursor is not None and cursor_id is not None:
            stmt = stmt.where(
                or_(
                    self.table.c.delivered_at < cursor,
                    and_(
                        self.table.c.delivered_at == cursor,
                        self.table.c.id < cursor_id,
                    ),
                )
            )
        elif cursor is not None:
            stmt = stmt.where(self.table.c.delivered_at < cursor)
        stmt = stmt.order_by(
            self.table.c.delivered_at.desc(), self.table.c.id.desc()
        ).limit(limit + 1)

        rows = self._execute_with_timeout(stmt).fetchall()
        has_more = len(rows) > limit
        records = [self._row_to_model(row) for row in rows[:limit]]

        last = records[-1] if has_more and records else None
        return DeliveredPage(
            records=records,
            next_cursor=last.delivered_at if last else None,
            next_cursor_id=last.id if last else None,
            has_more=has_more,
            total=self.count() if cursor is None else None,
        )

    def update(self, order_id: str, changes: DeliveredUpdate) -> DeliveredRecord | None:
        """
        Apply an administrative edit to an archived snapshot.

        Returns:
            The updated record, or None if the order is not archived
        """
        record = self.get_by_order_id(order_id)
        if record is None:
            return None

        fields = {
            name: value for name, value in changes if value is not None
        }
        snapshot = record.order.model_copy(update=fields)
        self.update_by_id(record.id, order_snapshot=model_to_jsonb(snapshot))
        return record.model_copy(update={"order": snapshot})

    def delete_by_order_id(self, order_id: str) -> bool:
        """Remove an order from the archive."""
        stmt = delete(self.table).where(self.table.c.order_id == order_id)
        return self.session.execute(stmt).rowcount > 0

    def count(self) -> int:
        """Number of archived orders."""
        stmt = select(func.count()).select_from(self.table)
        return self.session.execute(stmt).scalar() or 0
