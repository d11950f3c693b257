"""
Marketplace session lifecycle.

    pending --(plausible poll)--> active
    pending/active --(expired or placeholder-only poll)--> disabled
    active/disabled --(no orders reference it)--> purged (row deleted)

Disable and purge of one session are serialized with a per-session lock so
that a purge never races a concurrent disable or expiry.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

from parcelwatch.db.unit_of_work import UnitOfWork
from parcelwatch.engine.events import EventBus
from parcelwatch.marketplace.parser import is_plausible
from parcelwatch.models.cycle import PollOutcome
from parcelwatch.models.event import EventType
from parcelwatch.models.order import OrderDraft
from parcelwatch.models.session import MarketplaceSession, SessionStats, SessionStatus
from parcelwatch.utils.logging import log_fields

logger = logging.getLogger(__name__)

PURGEABLE_STATUSES = (SessionStatus.ACTIVE, SessionStatus.DISABLED)


class SessionLifecycleManager:
    """Owns every status transition of marketplace sessions."""

    def __init__(self, events: EventBus):
        self.events = events
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def guard(self, session_id: str) -> Iterator[None]:
        """Hold the per-session lock (re-entrant)."""
        with self._locks_guard:
            lock = self._locks.setdefault(session_id, threading.RLock())
        with lock:
            yield

    def _forget_lock(self, session_id: str):
        with self._locks_guard:
            self._locks.pop(session_id, None)

    def submit(self, credential: str) -> MarketplaceSession:
        """Register a new credential as a pending session."""
        with UnitOfWork() as uow:
            session = uow.sessions.create(
                MarketplaceSession(id=str(uuid4()), credential=credential.strip())
            )
            uow.commit()

        logger.info("Session submitted", extra=log_fields(session_id=session.id))
        return session

    def get(self, session_id: str) -> MarketplaceSession | None:
        with UnitOfWork() as uow:
            return uow.sessions.get_by_id(session_id)

    def sessions_to_poll(self) -> list[MarketplaceSession]:
        """Sessions polled by scheduled cycles: active only."""
        with UnitOfWork() as uow:
            return uow.sessions.get_by_status(SessionStatus.ACTIVE)

    def pending_sessions(self) -> list[MarketplaceSession]:
        with UnitOfWork() as uow:
            return uow.sessions.get_by_status(SessionStatus.PENDING)

    def stats(self) -> SessionStats:
        with UnitOfWork() as uow:
            counts = uow.sessions.count_by_status()
            delivered = uow.delivered.count()
        return SessionStats(
            pending=counts[SessionStatus.PENDING],
            active=counts[SessionStatus.ACTIVE],
            disabled=counts[SessionStatus.DISABLED],
            delivered=delivered,
        )

    def apply_poll_outcome(
        self, session: MarketplaceSession, drafts: list[OrderDraft]
    ) -> PollOutcome:
        """
        Apply the lifecycle consequence of a successful poll.

        Args:
            session: Polled session
            drafts: Records attributed to this session

        Returns:
            ACTIVATED, LIVE, IMPLAUSIBLE or NO_RECORDS
        """
        if not drafts:
            return PollOutcome.NO_RECORDS

        if not is_plausible(drafts):
            self.disable(session.id, reason="implausible")
            return PollOutcome.IMPLAUSIBLE

        if session.status == SessionStatus.PENDING:
            with self.guard(session.id):
                with UnitOfWork() as uow:
                    uow.sessions.update_status(session.id, SessionStatus.ACTIVE)
                    uow.commit()
            session.status = SessionStatus.ACTIVE
            logger.info(
                "Session activated",
                extra=log_fields(session_id=session.id, orders=len(drafts)),
            )
            self.events.emit(
                EventType.SESSION_ACTIVATED,
                session_id=session.id,
                orders_found=len(drafts),
            )
            return PollOutcome.ACTIVATED

        return PollOutcome.LIVE

    def disable(self, session_id: str, reason: str) -> bool:
        """Mark a session disabled without touching its orders."""
        with self.guard(session_id):
            with UnitOfWork() as uow:
                updated = uow.sessions.update_status(session_id, SessionStatus.DISABLED)
                uow.commit()

        if updated:
            logger.warning(
                "Session disabled",
                extra=log_fields(session_id=session_id, reason=reason),
            )
            self.events.emit(
                EventType.SESSION_DISABLED, session_id=session_id, reason=reason
            )
        return updated

    def expire(self, session_id: str) -> int:
        """
        Handle an expired credential.

        Disables the session and deletes every order it owns together with
        the orders' tracking journeys, in one transaction.

        Returns:
            Number of purged orders
        """
        with self.guard(session_id):
            with UnitOfWork() as uow:
                uow.sessions.update_status(session_id, SessionStatus.DISABLED)
                purged = uow.orders.delete_by_session(session_id)
                for order in purged:
                    uow.journeys.delete(order.tracking_number)
                uow.commit()

        logger.warning(
            "Session credential expired",
            extra=log_fields(session_id=session_id, orders_purged=len(purged)),
        )
        self.events.emit(
            EventType.SESSION_EXPIRED,
            session_id=session_id,
            orders_purged=len(purged),
        )
        return len(purged)

    def purge_if_orphaned(self, session_id: str | None) -> bool:
        """
        Delete an active or disabled session that no order references.

        Pending sessions are never purged: they have not been polled yet.

        Returns:
            True if the session row was deleted
        """
        if not session_id:
            return False

        with self.guard(session_id):
            with UnitOfWork() as uow:
                session = uow.sessions.get_by_id(session_id)
                if session is None or session.status not in PURGEABLE_STATUSES:
                    return False
                if uow.orders.count_by_session(session_id) > 0:
                    return False
                uow.sessions.delete_by_id(session_id)
                uow.commit()

        self._forget_lock(session_id)
        logger.info("Session purged", extra=log_fields(session_id=session_id))
        self.events.emit(EventType.SESSION_PURGED, session_id=session_id)
        return True

    def remove(self, session_id: str) -> bool:
        """
        Administratively delete a session with its orders and journeys.

        Returns:
            True if the session existed
        """
        with self.guard(session_id):
            with UnitOfWork() as uow:
                purged = uow.orders.delete_by_session(session_id)
                for order in purged:
                    uow.journeys.delete(order.tracking_number)
                removed = uow.sessions.delete_by_id(session_id)
                uow.commit()

        if removed:
            self._forget_lock(session_id)
            logger.info(
                "Session removed",
                extra=log_fields(session_id=session_id, orders_purged=len(purged)),
            )
            self.events.emit(EventType.SESSION_PURGED, session_id=session_id)
        return removed
