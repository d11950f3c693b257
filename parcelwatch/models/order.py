from datetime import datetime, timezone
from decimal import Decimal
from enum import IntEnum, StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Placeholder the marketplace uses when no tracking code has been issued yet
UNKNOWN_TRACKING_CODE = "Không xác định"


class Carrier(StrEnum):
    """Supported logistics carriers"""

    SPX = "SPX"  # Shopee Express
    GHN = "GHN"  # Giao Hang Nhanh


class TrackingMethod(IntEnum):
    """How an order's delivery status is currently sourced"""

    AWAITING_CODE = 0  # No tracking code yet, poll the marketplace
    SPX = 1  # Verified against the SPX API
    GHN = 2  # Verified against the GHN API
    UNSUPPORTED = 3  # Code supplied but carrier API did not confirm it


class DeliveryChannel(StrEnum):
    """Subsystem that detected the delivery"""

    MARKETPLACE = "marketplace"
    SPX = "spx"
    GHN = "ghn"


class Money(BaseModel):
    """Money amount with currency"""

    amount: Decimal = Field(description="Amount in the currency's main unit")
    currency: str = Field(default="VND", description="ISO 4217 currency code")

    def __str__(self) -> str:
        return f"{self.amount:,.0f} {self.currency}"


class OrderDraft(BaseModel):
    """
    One order record parsed from a marketplace response.

    Drafts are not persisted; the reconciler turns them into OrderRecords
    once they have been attributed to a session.
    """

    order_id: str = Field(description="Marketplace order identifier")
    ordinal: Optional[int] = Field(
        default=None,
        description="1-based position of the originating credential in the batch",
    )
    tracking_number: Optional[str] = Field(
        default=None, description="Tracking code or the unknown placeholder"
    )
    status: str = Field(description="Marketplace status text")
    shop: Optional[str] = Field(default=None, description="Shop name")
    product: str = Field(description="Product name and model")
    quantity: int = Field(default=1, description="Quantity ordered")
    unit_price: Optional[Money] = Field(default=None, description="Unit price")
    total_price: Optional[Money] = Field(default=None, description="Total price")
    image: Optional[str] = Field(default=None, description="Product image id")
    recipient_name: Optional[str] = Field(default=None, description="Recipient")
    recipient_phone: Optional[str] = Field(
        default=None, description="Recipient phone"
    )
    is_completed: bool = Field(
        default=False, description="Marketplace reports the order as delivered"
    )
    is_cancelled: bool = Field(
        default=False, description="Marketplace reports the order as cancelled"
    )


class OrderRecord(BaseModel):
    """
    One tracked shipment in the active order cache.

    Keyed by the marketplace order identifier and owned by exactly one
    marketplace session.
    """

    # Identity
    id: str = Field(description="Marketplace order identifier")
    session_id: Optional[str] = Field(
        default=None, description="Owning marketplace session"
    )

    # Order details
    shop: Optional[str] = Field(default=None, description="Shop name")
    product: str = Field(description="Product name and model")
    quantity: int = Field(default=1, description="Quantity ordered")
    unit_price: Optional[Money] = Field(default=None, description="Unit price")
    total_price: Optional[Money] = Field(default=None, description="Total price")
    image: Optional[str] = Field(default=None, description="Product image id")
    recipient_name: Optional[str] = Field(default=None, description="Recipient")
    recipient_phone: Optional[str] = Field(
        default=None, description="Recipient phone"
    )

    # Tracking
    tracking_number: Optional[str] = Field(
        default=None, description="Tracking code (nullable, may be the placeholder)"
    )
    carrier: Optional[Carrier] = Field(
        default=None, description="Verified carrier"
    )
    tracking_method: TrackingMethod = Field(
        default=TrackingMethod.AWAITING_CODE,
        description="How the status of this order is sourced",
    )
    status: str = Field(description="Latest human readable status")
    status_time: Optional[datetime] = Field(
        default=None, description="Timestamp of the latest carrier status"
    )
    current_location: Optional[str] = Field(
        default=None, description="Current parcel location"
    )
    next_location: Optional[str] = Field(
        default=None, description="Next parcel location"
    )

    # Timestamps
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Record creation time",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update time",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "224004746255220",
                "session_id": "0b6f3c1e-53a2-4cc4-9a59-3c4b2f1de001",
                "shop": "Shop Gia Dụng",
                "product": "Bình giữ nhiệt - Màu đỏ",
                "quantity": 1,
                "total_price": {"amount": "17080", "currency": "VND"},
                "tracking_number": "SPXVN068797458621",
                "carrier": "SPX",
                "tracking_method": 1,
                "status": "Đang vận chuyển",
            }
        }
    )

    @classmethod
    def from_draft(cls, draft: OrderDraft, session_id: str | None) -> "OrderRecord":
        """Build a fresh record from a parsed marketplace draft."""
        return cls(
            id=draft.order_id,
            session_id=session_id,
            shop=draft.shop,
            product=draft.product,
            quantity=draft.quantity,
            unit_price=draft.unit_price,
            total_price=draft.total_price,
            image=draft.image,
            recipient_name=draft.recipient_name,
            recipient_phone=draft.recipient_phone,
            tracking_number=draft.tracking_number,
            status=draft.status,
        )


# Explicit update structs. Each repository method writes exactly these fields.


class MarketplaceStatusUpdate(BaseModel):
    """Status text refresh coming from a marketplace poll."""

    status: str = Field(description="New marketplace status text")


class CarrierStatusUpdate(BaseModel):
    """Status and location refresh coming from a carrier poll."""

    status: str = Field(description="New carrier status text")
    status_time: Optional[datetime] = Field(
        default=None, description="Carrier timestamp of the status"
    )
    current_location: Optional[str] = Field(default=None)
    next_location: Optional[str] = Field(default=None)


class TrackingAssignment(BaseModel):
    """Tracking code classification after a verification attempt."""

    tracking_number: str = Field(description="Tracking code from the marketplace")
    carrier: Optional[Carrier] = Field(
        default=None, description="Verified carrier, None when unsupported"
    )
    tracking_method: TrackingMethod = Field(description="Resulting tracking method")
    status: str = Field(description="Status text at verification time")


class DeliveredRecord(BaseModel):
    """Archived snapshot of a finalized order"""

    id: str = Field(description="Archive entry identifier (UUID)")
    order_id: str = Field(description="Marketplace order identifier")
    order: OrderRecord = Field(description="Order snapshot at delivery time")
    delivered_via: DeliveryChannel = Field(
        description="Subsystem that detected the delivery"
    )
    delivered_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Delivery detection time",
    )


class DeliveredUpdate(BaseModel):
    """Administrative edit of an archived order."""

    product: Optional[str] = Field(default=None)
    quantity: Optional[int] = Field(default=None)
    total_price: Optional[Money] = Field(default=None)
    status: Optional[str] = Field(default=None)


class DeliveredPage(BaseModel):
    """Reverse-chronological page of the delivered archive."""

    records: list[DeliveredRecord] = Field(description="Archived orders")
    next_cursor: Optional[datetime] = Field(
        default=None, description="delivered_at of the last record, if more exist"
    )
    next_cursor_id: Optional[str] = Field(
        default=None, description="id of the last record, if more exist"
    )
    has_more: bool = Field(description="Whether another page exists")
    total: Optional[int] = Field(default=None, description="Archive size")


class TrackingEvent(BaseModel):
    """Individual carrier tracking event"""

    timestamp: Optional[datetime] = Field(default=None, description="Event time")
    code: Optional[str] = Field(default=None, description="Carrier status code")
    status: Optional[str] = Field(default=None, description="Carrier status name")
    description: Optional[str] = Field(default=None, description="Event text")
    location: Optional[str] = Field(default=None, description="Event location")


class TrackingJourney(BaseModel):
    """Cached carrier history for a tracking code"""

    tracking_number: str = Field(description="Tracking code")
    carrier: Carrier = Field(description="Carrier that produced the history")
    events: list[TrackingEvent] = Field(
        default_factory=list, description="Chronological events"
    )
    last_fetched: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last carrier fetch",
    )


class ActiveOrdersResponse(BaseModel):
    """Response for the active order set"""

    orders: list[OrderRecord] = Field(description="Active orders")
    total: int = Field(description="Number of active orders")
