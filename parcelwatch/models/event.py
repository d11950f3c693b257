from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class EventType(StrEnum):
    """Engine event types broadcast to subscribers"""

    SESSION_ACTIVATED = "session_activated"
    SESSION_DISABLED = "session_disabled"
    SESSION_EXPIRED = "session_expired"
    SESSION_PURGED = "session_purged"
    ORDER_NEW = "order_new"
    ORDER_UPDATED = "order_updated"
    TRACKING_FOUND = "tracking_found"
    TRACKING_UNSUPPORTED = "tracking_unsupported"
    ORDER_STATUS_UPDATED = "order_status_updated"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    CYCLE_COMPLETED = "cycle_completed"
    CYCLE_SKIPPED = "cycle_skipped"


class EngineEvent(BaseModel):
    """Single event published on the engine event bus"""

    type: EventType = Field(description="Event type")
    data: dict[str, Any] = Field(default_factory=dict, description="Payload")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Publication time",
    )
