"""
Order reconciliation.

Applies one marketplace poll (per session) and one carrier pass (per cycle)
to the active order cache. Every write states its fields through an explicit
update struct, and an unchanged upstream answer writes nothing and emits
nothing.
"""

import logging
from datetime import datetime, timezone

from parcelwatch.carriers import fetch_tracking_status
from parcelwatch.carriers.base import CarrierClient
from parcelwatch.carriers.resolver import (
    carrier_of_method,
    has_tracking_code,
    tracking_method_of,
)
from parcelwatch.db.errors import StoreTimeoutError
from parcelwatch.db.unit_of_work import UnitOfWork
from parcelwatch.engine.events import EventBus
from parcelwatch.engine.sessions import SessionLifecycleManager
from parcelwatch.models.carrier import (
    CarrierError,
    CarrierStatus,
    NotThisCarrier,
)
from parcelwatch.models.cycle import OrderOutcome
from parcelwatch.models.event import EventType
from parcelwatch.models.order import (
    Carrier,
    CarrierStatusUpdate,
    DeliveryChannel,
    MarketplaceStatusUpdate,
    OrderDraft,
    OrderRecord,
    TrackingAssignment,
    TrackingJourney,
    TrackingMethod,
)
from parcelwatch.models.session import MarketplaceSession
from parcelwatch.notifications.webhook import WebhookNotifier
from parcelwatch.utils.logging import log_fields

logger = logging.getLogger(__name__)

VERIFIED_METHODS = (TrackingMethod.SPX, TrackingMethod.GHN)

CARRIER_CHANNELS = {
    Carrier.SPX: DeliveryChannel.SPX,
    Carrier.GHN: DeliveryChannel.GHN,
}


class OrderReconciler:
    """Decides and applies per-order state changes."""

    def __init__(
        self,
        sessions: SessionLifecycleManager,
        carrier_clients: dict[Carrier, CarrierClient],
        notifier: WebhookNotifier,
        events: EventBus,
    ):
        self.sessions = sessions
        self.carrier_clients = carrier_clients
        self.notifier = notifier
        self.events = events

    # ------------------------------------------------------------------
    # Marketplace pass
    # ------------------------------------------------------------------

    def reconcile_session(
        self, session: MarketplaceSession, drafts: list[OrderDraft]
    ) -> list[OrderOutcome]:
        """
        Apply one successful poll of a session.

        Only the first non-cancelled record is tracked. Cached orders that
        arrive flagged cancelled, or that are missing from the poll, are
        purged as cancelled.

        Args:
            session: Polled session
            drafts: Records attributed to the session (must not be empty)

        Returns:
            Outcomes of every order touched
        """
        if not drafts:
            return []

        with UnitOfWork() as uow:
            cached = {order.id: order for order in uow.orders.get_by_session(session.id)}

        outcomes = []
        cancelled = 0

        for draft in drafts:
            if draft.is_cancelled and draft.order_id in cached:
                outcomes.append(self.purge_cancelled(cached[draft.order_id], "cancelled"))
                cancelled += 1

        first = next((draft for draft in drafts if not draft.is_cancelled), None)
        if first is not None:
            outcomes.append(self.reconcile_draft(session.id, first))

        fresh_ids = {draft.order_id for draft in drafts}
        for order_id, order in cached.items():
            if order_id not in fresh_ids:
                outcomes.append(self.purge_cancelled(order, "missing_from_poll"))
                cancelled += 1

        if cancelled:
            self.sessions.purge_if_orphaned(session.id)

        return outcomes

    def reconcile_draft(self, session_id: str, draft: OrderDraft) -> OrderOutcome:
        """
        Reconcile one marketplace record against the cache.

        1. Completed on the marketplace: finalize as delivered.
        2. Verified carrier method: left to the carrier pass.
        3. Unsupported code: status text refresh only.
        4. New tracking code: verify once against the resolved carrier.
        5. Otherwise: write only a new order or a changed status text.
        """
        with UnitOfWork() as uow:
            existing = uow.orders.get_by_id(draft.order_id)

        if draft.is_completed:
            order = existing or OrderRecord.from_draft(draft, session_id)
            return self.finalize_delivered(order, DeliveryChannel.MARKETPLACE, draft.status)

        if existing is not None and existing.tracking_method in VERIFIED_METHODS:
            return OrderOutcome.UNCHANGED

        if existing is not None and existing.tracking_method == TrackingMethod.UNSUPPORTED:
            return self._refresh_marketplace_status(existing, draft.status)

        if has_tracking_code(draft.tracking_number):
            return self.verify_tracking(session_id, draft, existing)

        if existing is None:
            return self._create_order(
                OrderRecord.from_draft(draft, session_id).model_copy(
                    update={"tracking_number": None}
                )
            )

        return self._refresh_marketplace_status(existing, draft.status)

    def verify_tracking(
        self,
        session_id: str,
        draft: OrderDraft,
        existing: OrderRecord | None,
    ) -> OrderOutcome:
        """
        Verify a newly supplied tracking code with its carrier.

        A transient carrier failure leaves the order awaiting a code, so the
        verification is retried on the next poll.
        """
        code = draft.tracking_number
        result = fetch_tracking_status(code, self.carrier_clients)

        if isinstance(result, CarrierError):
            logger.warning(
                "Tracking verification failed",
                extra=log_fields(order_id=draft.order_id, code=code, reason=result.reason),
            )
            if existing is None:
                return self._create_order(
                    OrderRecord.from_draft(draft, session_id).model_copy(
                        update={"tracking_number": None}
                    )
                )
            self._refresh_marketplace_status(existing, draft.status)
            return OrderOutcome.ERRORED

        assignment = self._assignment_for(code, result, draft.status)

        with UnitOfWork() as uow:
            if existing is None:
                record = OrderRecord.from_draft(draft, session_id).model_copy(
                    update=assignment.model_dump()
                )
                uow.orders.create(record)
            else:
                uow.orders.apply_tracking(draft.order_id, assignment)
            if isinstance(result, CarrierStatus):
                uow.journeys.save_if_richer(self._journey_of(result))
            uow.commit()

        return self._announce_assignment(draft.order_id, assignment, created=existing is None)

    def repair_inconsistent(self) -> list[OrderOutcome]:
        """
        Re-verify orders stuck awaiting a code while already holding one.

        Returns:
            One outcome per repaired candidate
        """
        with UnitOfWork() as uow:
            candidates = uow.orders.get_awaiting_with_code()

        outcomes = []
        for order in candidates:
            try:
                outcomes.append(self._repair_order(order))
            except StoreTimeoutError:
                raise
            except Exception:
                logger.exception(
                    "Tracking repair failed", extra=log_fields(order_id=order.id)
                )
                outcomes.append(OrderOutcome.ERRORED)

        return outcomes

    def _repair_order(self, order: OrderRecord) -> OrderOutcome:
        result = fetch_tracking_status(order.tracking_number, self.carrier_clients)
        if isinstance(result, CarrierError):
            return OrderOutcome.ERRORED

        assignment = self._assignment_for(order.tracking_number, result, order.status)
        with UnitOfWork() as uow:
            uow.orders.apply_tracking(order.id, assignment)
            if isinstance(result, CarrierStatus):
                uow.journeys.save_if_richer(self._journey_of(result))
            uow.commit()

        logger.info(
            "Repaired tracking classification",
            extra=log_fields(order_id=order.id, method=assignment.tracking_method.name),
        )
        return self._announce_assignment(order.id, assignment, created=False)

    # ------------------------------------------------------------------
    # Carrier pass
    # ------------------------------------------------------------------

    def poll_carriers(self) -> list[OrderOutcome]:
        """Poll the carrier of every verified order, one order at a time."""
        with UnitOfWork() as uow:
            orders = uow.orders.get_by_tracking_methods(list(VERIFIED_METHODS))

        outcomes = []
        for order in orders:
            try:
                outcomes.append(self._poll_carrier(order))
            except StoreTimeoutError:
                raise
            except Exception:
                logger.exception(
                    "Carrier poll failed", extra=log_fields(order_id=order.id)
                )
                outcomes.append(OrderOutcome.ERRORED)

        return outcomes

    def _poll_carrier(self, order: OrderRecord) -> OrderOutcome:
        carrier = carrier_of_method(order.tracking_method)
        client = self.carrier_clients.get(carrier)
        if client is None:
            logger.error(
                "No client for carrier",
                extra=log_fields(order_id=order.id, carrier=str(carrier)),
            )
            return OrderOutcome.ERRORED

        result = client.fetch_status(order.tracking_number)

        if isinstance(result, CarrierError):
            logger.warning(
                "Carrier status unavailable",
                extra=log_fields(order_id=order.id, reason=result.reason),
            )
            return OrderOutcome.ERRORED

        if isinstance(result, NotThisCarrier):
            logger.warning(
                "Verified carrier no longer recognizes tracking code",
                extra=log_fields(
                    order_id=order.id,
                    carrier=str(carrier),
                    code=order.tracking_number,
                ),
            )
            return OrderOutcome.INCONSISTENT

        if result.delivered:
            return self.finalize_delivered(
                order, CARRIER_CHANNELS[carrier], result.status_text
            )

        status_changed = result.status_text != order.status
        location_changed = (result.current_location, result.next_location) != (
            order.current_location,
            order.next_location,
        )
        backfill = order.status_time is None and result.status_time is not None

        with UnitOfWork() as uow:
            uow.journeys.save_if_richer(self._journey_of(result))
            if status_changed or location_changed or backfill:
                uow.orders.apply_carrier_status(
                    order.id,
                    CarrierStatusUpdate(
                        status=result.status_text,
                        status_time=result.status_time or order.status_time,
                        current_location=result.current_location,
                        next_location=result.next_location,
                    ),
                )
            uow.commit()

        if not (status_changed or location_changed or backfill):
            return OrderOutcome.UNCHANGED

        self.events.emit(
            EventType.ORDER_UPDATED,
            order_id=order.id,
            status=result.status_text,
            current_location=result.current_location,
        )
        return OrderOutcome.UPDATED

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def finalize_delivered(
        self, order: OrderRecord, channel: DeliveryChannel, status: str
    ) -> OrderOutcome:
        """
        Archive a delivered order and remove it from the active cache.

        An order already in the archive is only dropped from the cache, so a
        delivery is announced exactly once.
        """
        snapshot = order.model_copy(
            update={"status": status, "updated_at": datetime.now(timezone.utc)}
        )

        with UnitOfWork() as uow:
            already_archived = uow.delivered.exists_for_order(order.id)
            if not already_archived:
                uow.delivered.archive(snapshot, channel)
            uow.orders.delete_by_id(order.id)
            uow.journeys.delete(order.tracking_number)
            uow.commit()

        if already_archived:
            logger.debug("Order already archived", extra=log_fields(order_id=order.id))
            return OrderOutcome.UNCHANGED

        logger.info(
            "Order delivered",
            extra=log_fields(order_id=order.id, channel=channel.value),
        )
        self.sessions.purge_if_orphaned(order.session_id)
        self.notifier.send_delivered(snapshot)
        self.events.emit(
            EventType.ORDER_DELIVERED,
            order_id=order.id,
            session_id=order.session_id,
            delivered_via=channel.value,
            status=status,
        )
        return OrderOutcome.DELIVERED

    def purge_cancelled(self, order: OrderRecord, reason: str) -> OrderOutcome:
        """Remove a cancelled order from the cache without archiving it."""
        with UnitOfWork() as uow:
            uow.orders.delete_by_id(order.id)
            uow.journeys.delete(order.tracking_number)
            uow.commit()

        logger.info(
            "Order cancelled", extra=log_fields(order_id=order.id, reason=reason)
        )
        self.events.emit(
            EventType.ORDER_CANCELLED,
            order_id=order.id,
            session_id=order.session_id,
            reason=reason,
        )
        return OrderOutcome.CANCELLED

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _assignment_for(
        self, code: str, result: CarrierStatus | NotThisCarrier, status: str
    ) -> TrackingAssignment:
        if isinstance(result, CarrierStatus):
            return TrackingAssignment(
                tracking_number=code,
                carrier=result.carrier,
                tracking_method=tracking_method_of(result.carrier),
                status=result.status_text or status,
            )
        return TrackingAssignment(
            tracking_number=code,
            carrier=None,
            tracking_method=TrackingMethod.UNSUPPORTED,
            status=status,
        )

    def _announce_assignment(
        self, order_id: str, assignment: TrackingAssignment, created: bool
    ) -> OrderOutcome:
        if assignment.tracking_method == TrackingMethod.UNSUPPORTED:
            event_type, outcome = EventType.TRACKING_UNSUPPORTED, OrderOutcome.UNSUPPORTED
        else:
            event_type, outcome = EventType.TRACKING_FOUND, OrderOutcome.TRACKING_FOUND

        self.events.emit(
            event_type,
            order_id=order_id,
            tracking_number=assignment.tracking_number,
            carrier=assignment.carrier.value if assignment.carrier else None,
        )
        if created:
            self.events.emit(EventType.ORDER_NEW, order_id=order_id)
            return OrderOutcome.NEW
        return outcome

    def _create_order(self, order: OrderRecord) -> OrderOutcome:
        with UnitOfWork() as uow:
            uow.orders.create(order)
            uow.commit()

        logger.info(
            "New order tracked",
            extra=log_fields(order_id=order.id, session_id=order.session_id),
        )
        self.events.emit(
            EventType.ORDER_NEW,
            order_id=order.id,
            session_id=order.session_id,
            product=order.product,
            status=order.status,
        )
        return OrderOutcome.NEW

    def _refresh_marketplace_status(
        self, order: OrderRecord, status: str
    ) -> OrderOutcome:
        if status == order.status:
            return OrderOutcome.UNCHANGED

        with UnitOfWork() as uow:
            uow.orders.apply_marketplace_status(
                order.id, MarketplaceStatusUpdate(status=status)
            )
            uow.commit()

        self.events.emit(
            EventType.ORDER_STATUS_UPDATED, order_id=order.id, status=status
        )
        return OrderOutcome.UPDATED

    @staticmethod
    def _journey_of(result: CarrierStatus) -> TrackingJourney:
        return TrackingJourney(
            tracking_number=result.tracking_number,
            carrier=result.carrier,
            events=result.history,
        )
