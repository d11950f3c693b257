"""
Reconciliation cycle orchestration.

A cycle runs four phases in a fixed order:

    a. repair orders awaiting a code that already hold one
    b. poll active sessions in batches and reconcile their records
    c. poll carriers for every verified order
    d. push the active order set to the notification channel

Cycles and manual checks share one non-blocking lock: a trigger that finds
it held is skipped, never queued or interleaved.
"""

import logging
import threading
from datetime import datetime, timezone

from parcelwatch.config import MARKETPLACE_BATCH_SIZE
from parcelwatch.db.errors import StoreTimeoutError
from parcelwatch.db.unit_of_work import UnitOfWork
from parcelwatch.engine.errors import (
    CycleInProgressError,
    SessionDisabledError,
    SessionNotFoundError,
)
from parcelwatch.engine.events import EventBus
from parcelwatch.engine.reconciler import OrderReconciler
from parcelwatch.engine.sessions import SessionLifecycleManager
from parcelwatch.marketplace.attribution import attribute_batch
from parcelwatch.marketplace.client import MarketplaceClient
from parcelwatch.marketplace.errors import CredentialExpired, MarketplaceError
from parcelwatch.models.cycle import (
    CycleSummary,
    CycleTrigger,
    PollOutcome,
    SessionCheckResult,
)
from parcelwatch.models.event import EventType
from parcelwatch.models.order import OrderDraft
from parcelwatch.models.session import MarketplaceSession, SessionStatus
from parcelwatch.notifications.webhook import WebhookNotifier
from parcelwatch.utils.logging import log_fields

logger = logging.getLogger(__name__)

# Large enough to hold every session event of one cycle
CYCLE_EVENT_BUFFER = 10_000


class ReconciliationOrchestrator:
    """Drives reconciliation cycles and manual session checks."""

    def __init__(
        self,
        marketplace: MarketplaceClient,
        sessions: SessionLifecycleManager,
        reconciler: OrderReconciler,
        notifier: WebhookNotifier,
        events: EventBus,
        batch_size: int = MARKETPLACE_BATCH_SIZE,
    ):
        self.marketplace = marketplace
        self.sessions = sessions
        self.reconciler = reconciler
        self.notifier = notifier
        self.events = events
        self.batch_size = batch_size
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run_cycle(self, trigger: CycleTrigger = CycleTrigger.SCHEDULED) -> CycleSummary:
        """
        Run one reconciliation cycle unless one is already running.

        Returns:
            Cycle summary; ``skipped`` is set when the lock was busy

        Raises:
            StoreTimeoutError: A store query exceeded its deadline
        """
        if not self._lock.acquire(blocking=False):
            logger.info(
                "Reconciliation cycle skipped, another run is in progress",
                extra=log_fields(trigger=trigger.value),
            )
            self.events.emit(EventType.CYCLE_SKIPPED, trigger=trigger.value)
            return CycleSummary(
                trigger=trigger, skipped=True, finished_at=datetime.now(timezone.utc)
            )

        try:
            return self._run_cycle(trigger)
        finally:
            self._lock.release()

    def _run_cycle(self, trigger: CycleTrigger) -> CycleSummary:
        summary = CycleSummary(trigger=trigger)
        logger.info("Reconciliation cycle started", extra=log_fields(trigger=trigger.value))

        with self.events.subscribe(maxsize=CYCLE_EVENT_BUFFER) as observed:
            # a. consistency repair
            for outcome in self.reconciler.repair_inconsistent():
                summary.record(outcome)

            # b. batched marketplace polling
            sessions = self.sessions.sessions_to_poll()
            for start in range(0, len(sessions), self.batch_size):
                self._poll_batch(sessions[start : start + self.batch_size], summary)

            # c. carrier pass
            for outcome in self.reconciler.poll_carriers():
                summary.record(outcome)

            # d. notification fan-out
            with UnitOfWork() as uow:
                active_orders = uow.orders.list_all()
            self.notifier.send_active_orders(active_orders)

            summary.sessions_purged = self._count_events(
                observed, EventType.SESSION_PURGED
            )

        summary.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Reconciliation cycle finished",
            extra=log_fields(
                **summary.model_dump(
                    mode="json", exclude={"trigger", "skipped", "started_at", "finished_at"}
                ),
                trigger=trigger.value,
                duration_seconds=(summary.finished_at - summary.started_at).total_seconds(),
            ),
        )
        self.events.emit(EventType.CYCLE_COMPLETED, **summary.model_dump(mode="json"))
        return summary

    @staticmethod
    def _count_events(subscription, event_type: EventType) -> int:
        count = 0
        while (event := subscription.get(timeout=0)) is not None:
            if event.type == event_type:
                count += 1
        return count

    def _poll_batch(self, batch: list[MarketplaceSession], summary: CycleSummary):
        """Poll one batch of sessions and reconcile what each of them owns."""
        try:
            drafts = self.marketplace.fetch_batch([s.credential for s in batch])
        except CredentialExpired:
            if len(batch) == 1:
                self._expire(batch[0], summary)
                return
            # The banner does not say whose credential expired
            logger.warning(
                "Batch reported an expired credential, re-polling individually",
                extra=log_fields(batch_size=len(batch)),
            )
            for session in batch:
                self._poll_batch([session], summary)
            return
        except MarketplaceError as e:
            logger.warning(
                "Marketplace poll failed",
                extra=log_fields(batch_size=len(batch), error=str(e)),
            )
            summary.errored += len(batch)
            return

        summary.sessions_polled += len(batch)

        with UnitOfWork() as uow:
            known_owners = uow.orders.owners_of([d.order_id for d in drafts])
        grouped, dropped = attribute_batch(drafts, batch, known_owners, self._lookup_owner)
        summary.unattributed += len(dropped)

        for session in batch:
            try:
                self._apply_session_poll(session, grouped.get(session.id, []), summary)
            except StoreTimeoutError:
                raise
            except Exception:
                logger.exception(
                    "Reconciling session failed", extra=log_fields(session_id=session.id)
                )
                summary.errored += 1

    def _apply_session_poll(
        self,
        session: MarketplaceSession,
        drafts: list[OrderDraft],
        summary: CycleSummary,
    ) -> PollOutcome:
        outcome = self.sessions.apply_poll_outcome(session, drafts)

        if outcome == PollOutcome.ACTIVATED:
            summary.sessions_activated += 1
        elif outcome == PollOutcome.IMPLAUSIBLE:
            summary.sessions_disabled += 1
            return outcome
        elif outcome == PollOutcome.NO_RECORDS:
            # Inconclusive: nothing to reconcile, no cancellation detection
            return outcome

        for order_outcome in self.reconciler.reconcile_session(session, drafts):
            summary.record(order_outcome)
        return outcome

    def _expire(self, session: MarketplaceSession, summary: CycleSummary):
        summary.sessions_expired += 1
        summary.orders_purged += self.sessions.expire(session.id)

    @staticmethod
    def _lookup_owner(order_id: str) -> str | None:
        with UnitOfWork() as uow:
            return uow.orders.owner_of(order_id)

    # ------------------------------------------------------------------
    # Manual checks
    # ------------------------------------------------------------------

    def check_session(self, session_id: str) -> SessionCheckResult:
        """
        Poll a single session now (may promote a pending session).

        Raises:
            CycleInProgressError: A cycle or another check is running
            SessionNotFoundError: Unknown session id
            SessionDisabledError: The session is disabled
        """
        if not self._lock.acquire(blocking=False):
            raise CycleInProgressError("A reconciliation cycle is in progress")

        try:
            session = self.sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            if session.status == SessionStatus.DISABLED:
                raise SessionDisabledError(session_id)
            return self._check(session)
        finally:
            self._lock.release()

    def check_pending(self) -> list[SessionCheckResult]:
        """
        Poll every pending session once, one at a time.

        Raises:
            CycleInProgressError: A cycle or another check is running
        """
        if not self._lock.acquire(blocking=False):
            raise CycleInProgressError("A reconciliation cycle is in progress")

        try:
            return [self._check(session) for session in self.sessions.pending_sessions()]
        finally:
            self._lock.release()

    def _check(self, session: MarketplaceSession) -> SessionCheckResult:
        try:
            drafts = self.marketplace.fetch_orders(session.credential)
        except CredentialExpired:
            self.sessions.expire(session.id)
            return SessionCheckResult(
                session_id=session.id, status=SessionStatus.DISABLED, expired=True
            )
        except MarketplaceError as e:
            logger.warning(
                "Manual session check failed",
                extra=log_fields(session_id=session.id, error=str(e)),
            )
            return SessionCheckResult(
                session_id=session.id, status=session.status, error=str(e)
            )

        with UnitOfWork() as uow:
            known_owners = uow.orders.owners_of([d.order_id for d in drafts])
        grouped, _ = attribute_batch(drafts, [session], known_owners, self._lookup_owner)
        owned = grouped.get(session.id, [])

        outcome = self._apply_session_poll(session, owned, CycleSummary(trigger=CycleTrigger.MANUAL))
        status = SessionStatus.DISABLED if outcome == PollOutcome.IMPLAUSIBLE else session.status
        first = next((d for d in owned if not d.is_cancelled), None)

        return SessionCheckResult(
            session_id=session.id,
            status=status,
            outcome=outcome,
            orders=[first] if first else [],
        )
