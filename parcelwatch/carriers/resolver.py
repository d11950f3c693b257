"""
Carrier resolution from tracking codes.

Pure functions only: no I/O, total over their inputs.
"""

import re

from parcelwatch.models.order import UNKNOWN_TRACKING_CODE, Carrier, TrackingMethod

# Ordered prefix patterns, first match wins
CARRIER_PATTERNS: list[tuple[Carrier, re.Pattern[str]]] = [
    # SPXVN068797458621, or VN + digits for cross-border parcels
    (Carrier.SPX, re.compile(r"^(SPXVN|VN\d+)", re.IGNORECASE)),
]

# Any well-formed code that matches no pattern
DEFAULT_CARRIER = Carrier.GHN

WELL_FORMED_CODE = re.compile(r"^[A-Za-z0-9]{6,40}$")

_METHOD_BY_CARRIER = {
    Carrier.SPX: TrackingMethod.SPX,
    Carrier.GHN: TrackingMethod.GHN,
}
_CARRIER_BY_METHOD = {method: carrier for carrier, method in _METHOD_BY_CARRIER.items()}


def has_tracking_code(code: str | None) -> bool:
    """Return True when code is a real tracking code (not empty or the placeholder)."""
    if code is None:
        return False
    code = code.strip()
    return bool(code) and code != UNKNOWN_TRACKING_CODE


def detect_carrier(code: str | None) -> Carrier | None:
    """
    Classify a tracking code into a carrier.

    Args:
        code: Tracking code as reported by the marketplace

    Returns:
        Carrier for the code, or None for empty, placeholder or malformed codes
    """
    if not has_tracking_code(code):
        return None

    code = code.strip()
    if not WELL_FORMED_CODE.match(code):
        return None

    for carrier, pattern in CARRIER_PATTERNS:
        if pattern.match(code):
            return carrier

    return DEFAULT_CARRIER


def tracking_method_of(carrier: Carrier | str | None) -> TrackingMethod:
    """Map a carrier to its tracking method; unknown carriers await a code."""
    if carrier is None:
        return TrackingMethod.AWAITING_CODE
    try:
        return _METHOD_BY_CARRIER[Carrier(carrier)]
    except (KeyError, ValueError):
        return TrackingMethod.AWAITING_CODE


def carrier_of_method(method: TrackingMethod | int) -> Carrier | None:
    """Inverse of tracking_method_of; None for AWAITING_CODE and UNSUPPORTED."""
    try:
        return _CARRIER_BY_METHOD.get(TrackingMethod(method))
    except ValueError:
        return None
