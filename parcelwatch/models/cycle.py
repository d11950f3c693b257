from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from parcelwatch.models.order import OrderDraft
from parcelwatch.models.session import SessionStatus


class CycleTrigger(StrEnum):
    """What started a reconciliation cycle"""

    SCHEDULED = "scheduled"
    MANUAL = "manual"


class OrderOutcome(StrEnum):
    """Result of reconciling one order within a cycle"""

    NEW = "new"  # First observation, cached
    UPDATED = "updated"  # Status or location changed
    UNCHANGED = "unchanged"  # Nothing written
    TRACKING_FOUND = "tracking_found"  # Code verified against a carrier
    UNSUPPORTED = "unsupported"  # Code not confirmed by the resolved carrier
    DELIVERED = "delivered"  # Archived and removed from the cache
    CANCELLED = "cancelled"  # Removed from the cache without archiving
    ERRORED = "errored"  # Transient failure, retried next cycle
    INCONSISTENT = "inconsistent"  # Verified carrier now denies the code


class PollOutcome(StrEnum):
    """Session lifecycle decision for one marketplace poll"""

    ACTIVATED = "activated"  # pending -> active
    LIVE = "live"  # still active
    IMPLAUSIBLE = "implausible"  # disabled, placeholder data only
    NO_RECORDS = "no_records"  # inconclusive, no change


class CycleSummary(BaseModel):
    """Aggregated outcome of one reconciliation cycle"""

    trigger: CycleTrigger = Field(description="What started the cycle")
    skipped: bool = Field(
        default=False, description="Cycle skipped because another was running"
    )
    new: int = Field(default=0, description="Newly tracked orders")
    updated: int = Field(default=0, description="Status-updated orders")
    delivered: int = Field(default=0, description="Orders finalized as delivered")
    cancelled: int = Field(default=0, description="Orders purged as cancelled")
    errored: int = Field(default=0, description="Transient failures")
    unattributed: int = Field(
        default=0, description="Parsed records dropped for lack of attribution"
    )
    sessions_polled: int = Field(default=0)
    sessions_activated: int = Field(default=0)
    sessions_disabled: int = Field(default=0)
    sessions_expired: int = Field(default=0)
    sessions_purged: int = Field(default=0)
    orders_purged: int = Field(
        default=0, description="Orders purged by credential expiry"
    )
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    finished_at: Optional[datetime] = Field(default=None)

    def record(self, outcome: OrderOutcome) -> None:
        """Fold a single order outcome into the counters."""
        if outcome == OrderOutcome.NEW:
            self.new += 1
        elif outcome in (
            OrderOutcome.UPDATED,
            OrderOutcome.TRACKING_FOUND,
            OrderOutcome.UNSUPPORTED,
        ):
            self.updated += 1
        elif outcome == OrderOutcome.DELIVERED:
            self.delivered += 1
        elif outcome == OrderOutcome.CANCELLED:
            self.cancelled += 1
        elif outcome in (OrderOutcome.ERRORED, OrderOutcome.INCONSISTENT):
            self.errored += 1


class SessionCheckResult(BaseModel):
    """Result of a manual single-session check"""

    session_id: str
    status: SessionStatus = Field(description="Session status after the check")
    outcome: Optional[PollOutcome] = Field(default=None)
    expired: bool = Field(default=False)
    error: Optional[str] = Field(default=None)
    orders: list[OrderDraft] = Field(
        default_factory=list, description="First non-cancelled order, if any"
    )
