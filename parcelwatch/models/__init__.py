"""
parcelwatch data models.

This package contains all Pydantic models for the parcel reconciliation engine.
"""

# Carrier result models
from parcelwatch.models.carrier import (
    CarrierError,
    CarrierResult,
    CarrierStatus,
    NotThisCarrier,
)

# Cycle models
from parcelwatch.models.cycle import (
    CycleSummary,
    CycleTrigger,
    OrderOutcome,
    PollOutcome,
    SessionCheckResult,
)

# Event models
from parcelwatch.models.event import EngineEvent, EventType

# Order models
from parcelwatch.models.order import (
    UNKNOWN_TRACKING_CODE,
    ActiveOrdersResponse,
    Carrier,
    CarrierStatusUpdate,
    DeliveredPage,
    DeliveredRecord,
    DeliveredUpdate,
    DeliveryChannel,
    MarketplaceStatusUpdate,
    Money,
    OrderDraft,
    OrderRecord,
    TrackingAssignment,
    TrackingEvent,
    TrackingJourney,
    TrackingMethod,
)

# Session models
from parcelwatch.models.session import (
    MarketplaceSession,
    SessionStats,
    SessionStatus,
    SessionSubmitRequest,
    SessionSummary,
)

__all__ = [
    # Carrier result models
    "CarrierError",
    "CarrierResult",
    "CarrierStatus",
    "NotThisCarrier",
    # Cycle models
    "CycleSummary",
    "CycleTrigger",
    "OrderOutcome",
    "PollOutcome",
    "SessionCheckResult",
    # Event models
    "EngineEvent",
    "EventType",
    # Order models
    "UNKNOWN_TRACKING_CODE",
    "ActiveOrdersResponse",
    "Carrier",
    "CarrierStatusUpdate",
    "DeliveredPage",
    "DeliveredRecord",
    "DeliveredUpdate",
    "DeliveryChannel",
    "MarketplaceStatusUpdate",
    "Money",
    "OrderDraft",
    "OrderRecord",
    "TrackingAssignment",
    "TrackingEvent",
    "TrackingJourney",
    "TrackingMethod",
    # Session models
    "MarketplaceSession",
    "SessionStats",
    "SessionStatus",
    "SessionSubmitRequest",
    "SessionSummary",
]
