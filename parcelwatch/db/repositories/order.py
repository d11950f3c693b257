"""
Order repository for the active order cache.

Every mutation goes through an explicit update struct and writes exactly
the fields of that struct plus ``updated_at``.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Table, and_, delete, func, select

from parcelwatch.carriers.resolver import has_tracking_code
from parcelwatch.db.repositories.base import (
    BaseRepository,
    jsonb_to_model,
    model_to_jsonb,
)
from parcelwatch.db.tables import orders
from parcelwatch.models.order import (
    Carrier,
    CarrierStatusUpdate,
    MarketplaceStatusUpdate,
    Money,
    OrderRecord,
    TrackingAssignment,
    TrackingMethod,
)


class OrderRepository(BaseRepository[OrderRecord]):
    """Repository for OrderRecord operations with JSON price handling."""

    @property
    def table(self) -> Table:
        return orders

    def _row_to_model(self, row: Any) -> OrderRecord:
        """Convert database row to OrderRecord model."""
        return OrderRecord(
            id=row.id,
            session_id=row.session_id,
            shop=row.shop,
            product=row.product,
            quantity=row.quantity or 1,
            unit_price=jsonb_to_model(row.unit_price, Money),
            total_price=jsonb_to_model(row.total_price, Money),
            image=row.image,
            recipient_name=row.recipient_name,
            recipient_phone=row.recipient_phone,
            tracking_number=row.tracking_number,
            carrier=Carrier(row.carrier) if row.carrier else None,
            tracking_method=TrackingMethod(row.tracking_method or 0),
            status=row.status,
            status_time=row.status_time,
            current_location=row.current_location,
            next_location=row.next_location,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _model_to_dict(self, model: OrderRecord) -> dict:
        """Convert OrderRecord model to database dict."""
        now = datetime.now(timezone.utc)
        return {
            "id": model.id,
            "session_id": model.session_id,
            "shop": model.shop,
            "product": model.product,
            "quantity": model.quantity,
            "unit_price": model_to_jsonb(model.unit_price),
            "total_price": model_to_jsonb(model.total_price),
            "image": model.image,
            "recipient_name": model.recipient_name,
            "recipient_phone": model.recipient_phone,
            "tracking_number": model.tracking_number,
            "carrier": model.carrier.value if model.carrier else None,
            "tracking_method": int(model.tracking_method),
            "status": model.status,
            "status_time": model.status_time,
            "current_location": model.current_location,
            "next_location": model.next_location,
            "created_at": model.created_at or now,
            "updated_at": now,
        }

    def _select_many(self, *conditions) -> list[OrderRecord]:
        stmt = select(self.table).where(*conditions).order_by(self.table.c.created_at)
        result = self.session.execute(stmt)
        return [self._row_to_model(row) for row in result.fetchall()]

    def get_by_session(self, session_id: str) -> list[OrderRecord]:
        """Get all cached orders owned by a session."""
        return self._select_many(self.table.c.session_id == session_id)

    def get_by_tracking_methods(
        self, methods: list[TrackingMethod]
    ) -> list[OrderRecord]:
        """Get orders whose status is sourced by one of the given methods."""
        return self._select_many(
            self.table.c.tracking_method.in_([int(m) for m in methods])
        )

    def get_awaiting_with_code(self) -> list[OrderRecord]:
        """
        Get AWAITING_CODE orders that nevertheless carry a real tracking code.

        These violate the AWAITING_CODE invariant and need re-verification.
        """
        candidates = self._select_many(
            self.table.c.tracking_method == int(TrackingMethod.AWAITING_CODE),
            self.table.c.tracking_number.is_not(None),
        )
        return [o for o in candidates if has_tracking_code(o.tracking_number)]

    def get_without_tracking_code(self) -> list[OrderRecord]:
        """Get orders that have no usable tracking code yet."""
        candidates = self._select_many(
            self.table.c.tracking_method == int(TrackingMethod.AWAITING_CODE)
        )
        return [o for o in candidates if not has_tracking_code(o.tracking_number)]

    def list_all(self) -> list[OrderRecord]:
        """Get the whole active order set."""
        return self._select_many()

    def count_by_session(self, session_id: str) -> int:
        """Count orders still referencing a session."""
        stmt = (
            select(func.count())
            .select_from(self.table)
            .where(self.table.c.session_id == session_id)
        )
        return self.session.execute(stmt).scalar() or 0

    def owners_of(self, order_ids: list[str]) -> dict[str, str]:
        """Map order id -> owning session id for the given ids."""
        if not order_ids:
            return {}
        stmt = select(self.table.c.id, self.table.c.session_id).where(
            and_(
                self.table.c.id.in_(order_ids),
                self.table.c.session_id.is_not(None),
            )
        )
        return {row.id: row.session_id for row in self.session.execute(stmt)}

    def owner_of(self, order_id: str) -> str | None:
        """Current owning session of an order id, if cached."""
        stmt = select(self.table.c.session_id).where(self.table.c.id == order_id)
        return self.session.execute(stmt).scalar()

    def upsert(self, order: OrderRecord) -> tuple[OrderRecord, bool]:
        """
        Insert a new order or refresh the marketplace fields of an existing one.

        Tracking classification (carrier, method) of an existing row is left
        untouched; use apply_tracking for that.

        Returns:
            Tuple of (stored order, created flag)
        """
        existing = self.get_by_id(order.id)
        if existing is None:
            return self.create(order), True

        self.update_by_id(
            order.id,
            session_id=order.session_id,
            shop=order.shop,
            product=order.product,
            quantity=order.quantity,
            unit_price=model_to_jsonb(order.unit_price),
            total_price=model_to_jsonb(order.total_price),
            image=order.image,
            recipient_name=order.recipient_name,
            recipient_phone=order.recipient_phone,
            status=order.status,
            updated_at=datetime.now(timezone.utc),
        )
        return self.get_by_id(order.id), False

    def apply_marketplace_status(
        self, order_id: str, update: MarketplaceStatusUpdate
    ) -> bool:
        """Write a marketplace status text refresh."""
        return self.update_by_id(
            order_id, status=update.status, updated_at=datetime.now(timezone.utc)
        )

    def apply_carrier_status(self, order_id: str, update: CarrierStatusUpdate) -> bool:
        """Write a carrier status and location refresh."""
        return self.update_by_id(
            order_id,
            status=update.status,
            status_time=update.status_time,
            current_location=update.current_location,
            next_location=update.next_location,
            updated_at=datetime.now(timezone.utc),
        )

    def apply_tracking(self, order_id: str, assignment: TrackingAssignment) -> bool:
        """Write the outcome of a tracking code verification."""
        return self.update_by_id(
            order_id,
            tracking_number=assignment.tracking_number,
            carrier=assignment.carrier.value if assignment.carrier else None,
            tracking_method=int(assignment.tracking_method),
            status=assignment.status,
            updated_at=datetime.now(timezone.utc),
        )

    def delete_by_session(self, session_id: str) -> list[OrderRecord]:
        """
        Delete every order owned by a session.

        Returns:
            The deleted orders
        """
        deleted = self.get_by_session(session_id)
        if deleted:
            self.session.execute(
                delete(self.table).where(self.table.c.session_id == session_id)
            )
        return deleted
