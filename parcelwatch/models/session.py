from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field


class SessionStatus(StrEnum):
    """Lifecycle status of a borrowed marketplace credential"""

    PENDING = "pending"  # Submitted, not yet confirmed by a poll
    ACTIVE = "active"  # Last poll returned plausible orders
    DISABLED = "disabled"  # Expired or returning placeholder data


class MarketplaceSession(BaseModel):
    """
    A borrowed marketplace credential used to poll for orders.

    The credential payload is opaque to the engine; it is forwarded as-is
    (after cookie normalization) to the marketplace scraping endpoint.
    """

    id: str = Field(description="Internal session identifier (UUID)")
    credential: str = Field(description="Opaque marketplace credential")
    status: SessionStatus = Field(
        default=SessionStatus.PENDING, description="Lifecycle status"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Record creation time",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update time",
    )


class SessionSubmitRequest(BaseModel):
    """Request body for submitting a new credential."""

    credential: str = Field(description="Marketplace cookie string")
    check_now: bool = Field(
        default=False, description="Poll the marketplace immediately"
    )


class SessionStats(BaseModel):
    """Session counts per status plus the delivered archive size."""

    pending: int = 0
    active: int = 0
    disabled: int = 0
    delivered: int = 0


class SessionSummary(BaseModel):
    """Session as exposed over the API (credential masked)."""

    id: str
    status: SessionStatus
    credential_preview: str = Field(description="First characters of the credential")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, session: MarketplaceSession) -> "SessionSummary":
        return cls(
            id=session.id,
            status=session.status,
            credential_preview=f"{session.credential[:12]}...",
            created_at=session.created_at,
            updated_at=session.updated_at,
        )
