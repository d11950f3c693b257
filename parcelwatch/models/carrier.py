"""
Normalized carrier tracking results.

Every carrier client returns exactly one of three variants, distinguished
by the ``kind`` tag.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from parcelwatch.models.order import Carrier, TrackingEvent


class CarrierStatus(BaseModel):
    """Snapshot of a shipment confirmed by the carrier API"""

    kind: Literal["ok"] = "ok"
    carrier: Carrier
    tracking_number: str
    delivered: bool = Field(description="Carrier reports the parcel delivered")
    status_code: Optional[str] = Field(default=None, description="Carrier code")
    status_text: str = Field(description="Human readable status")
    status_time: Optional[datetime] = Field(default=None)
    current_location: Optional[str] = Field(default=None)
    next_location: Optional[str] = Field(default=None)
    history: list[TrackingEvent] = Field(
        default_factory=list, description="Chronological tracking events"
    )


class NotThisCarrier(BaseModel):
    """The carrier API affirmatively reports no such shipment"""

    kind: Literal["not_this_carrier"] = "not_this_carrier"
    carrier: Optional[Carrier] = Field(
        default=None, description="None when no carrier matches the code"
    )
    tracking_number: str
    reason: str = "Not a shipment of this carrier"


class CarrierError(BaseModel):
    """Transient failure (network, timeout, unexpected response shape)"""

    kind: Literal["error"] = "error"
    carrier: Optional[Carrier] = None
    tracking_number: str
    reason: str


CarrierResult = Annotated[
    Union[CarrierStatus, NotThisCarrier, CarrierError],
    Field(discriminator="kind"),
]
