"""
Carrier resolution and tracking clients.
"""

from parcelwatch.carriers.base import CarrierClient
from parcelwatch.carriers.ghn import GHNClient
from parcelwatch.carriers.resolver import (
    carrier_of_method,
    detect_carrier,
    has_tracking_code,
    tracking_method_of,
)
from parcelwatch.carriers.spx import SPXClient
from parcelwatch.models.carrier import CarrierError, CarrierResult, NotThisCarrier
from parcelwatch.models.order import Carrier


def default_carrier_clients() -> dict[Carrier, CarrierClient]:
    """Build one client per supported carrier with default settings."""
    return {
        Carrier.SPX: SPXClient(),
        Carrier.GHN: GHNClient(),
    }


def fetch_tracking_status(
    tracking_number: str, clients: dict[Carrier, CarrierClient]
) -> CarrierResult:
    """
    Resolve the carrier of a tracking code and fetch its status.

    Args:
        tracking_number: Tracking code
        clients: Carrier clients keyed by carrier

    Returns:
        The client's result. A malformed code is NotThisCarrier without a
        carrier; a carrier without a configured client is a CarrierError.
    """
    carrier = detect_carrier(tracking_number)
    if carrier is None:
        return NotThisCarrier(
            tracking_number=tracking_number,
            reason="No carrier matches this tracking code",
        )
    client = clients.get(carrier)
    if client is None:
        return CarrierError(
            carrier=carrier,
            tracking_number=tracking_number,
            reason=f"No client configured for {carrier}",
        )
    return client.fetch_status(tracking_number)


__all__ = [
    "CarrierClient",
    "GHNClient",
    "SPXClient",
    "carrier_of_method",
    "default_carrier_clients",
    "detect_carrier",
    "fetch_tracking_status",
    "has_tracking_code",
    "tracking_method_of",
]
