"""
Status text classification.

Upstream status strings are free text (Vietnamese for the marketplace,
English slugs or names for the carriers). All keyword matching that derives
delivered/cancelled flags goes through ``classify_status`` and the tables
below. Tables are ordered; the first matching entry wins, so more specific
phrases must precede the generic keywords they contain.
"""

import unicodedata
from enum import StrEnum


class StatusSource(StrEnum):
    """Origin of a status string"""

    MARKETPLACE = "marketplace"
    SPX = "spx"
    GHN = "ghn"


class StatusClass(StrEnum):
    """Normalized meaning of a status string"""

    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    IN_TRANSIT = "in_transit"
    PREPARING = "preparing"
    OTHER = "other"


STATUS_KEYWORDS: dict[StatusSource, list[tuple[StatusClass, tuple[str, ...]]]] = {
    StatusSource.MARKETPLACE: [
        # "Handed to the carrier" and "delivery failed" contain "đã giao"
        # / "giao hàng" and must not read as delivered.
        (
            StatusClass.IN_TRANSIT,
            (
                "đã giao cho đơn vị vận chuyển",
                "đã giao cho đvvc",
                "giao hàng không thành công",
                "đang vận chuyển",
                "đang giao",
            ),
        ),
        # A cancelled order that was refunded is still cancelled
        (StatusClass.CANCELLED, ("đã hủy", "đã huỷ", "hủy", "huỷ")),
        (StatusClass.RETURNED, ("trả hàng", "hoàn tiền")),
        (
            StatusClass.DELIVERED,
            ("giao hàng thành công", "đã giao", "hoàn tất", "đã nhận hàng"),
        ),
        (StatusClass.PREPARING, ("chờ lấy hàng", "đang xử lý", "chờ xác nhận")),
    ],
    StatusSource.SPX: [
        (StatusClass.RETURNED, ("return",)),
        (StatusClass.DELIVERED, ("delivered",)),
        (
            StatusClass.IN_TRANSIT,
            ("out for delivery", "in transit", "arrived", "departed", "sorting"),
        ),
        (StatusClass.PREPARING, ("created", "pickup", "picked up", "preparing")),
    ],
    StatusSource.GHN: [
        (StatusClass.RETURNED, ("return",)),
        (StatusClass.CANCELLED, ("cancel",)),
        (StatusClass.DELIVERED, ("delivered",)),
        (
            StatusClass.IN_TRANSIT,
            ("transporting", "delivering", "storing", "sorting", "delivery_fail"),
        ),
        (StatusClass.PREPARING, ("ready_to_pick", "picking", "picked")),
    ],
}


def _normalize(text: str) -> str:
    return unicodedata.normalize("NFC", text).strip().lower()


def classify_status(source: StatusSource, text: str | None) -> StatusClass:
    """
    Classify a free-text status string.

    Args:
        source: Where the string came from (selects the keyword table)
        text: Raw status text; None or empty classifies as OTHER

    Returns:
        The first matching StatusClass, or StatusClass.OTHER
    """
    if not text:
        return StatusClass.OTHER

    normalized = _normalize(text)
    for status_class, keywords in STATUS_KEYWORDS[source]:
        for keyword in keywords:
            if _normalize(keyword) in normalized:
                return status_class

    return StatusClass.OTHER
