"""Hash utility functions for parcelwatch."""

import hashlib


def compute_sha256(data: bytes) -> str:
    """
    Compute SHA-256 hash of data.

    Args:
        data: Raw bytes to hash

    Returns:
        Hexadecimal SHA-256 hash string
    """
    return hashlib.sha256(data).hexdigest()


def derive_order_id(tracking_number: str) -> str:
    """
    Derive a stable order identifier from a tracking code.

    Used when the marketplace response carries a tracking code but no
    order identifier.

    Args:
        tracking_number: Tracking code of the shipment

    Returns:
        Identifier of the form ``d`` + 16 hex characters
    """
    digest = compute_sha256(tracking_number.strip().upper().encode("utf-8"))
    return f"d{digest[:16]}"
