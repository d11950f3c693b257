"""
Parsing of marketplace order responses.

The scraping endpoint answers with an HTML table (current) or a JSON
document (legacy). Both are turned into OrderDraft lists.
"""

import json
import logging
import re
from decimal import Decimal
from typing import Any

from bs4 import BeautifulSoup, Tag

from parcelwatch.marketplace.errors import CredentialExpired
from parcelwatch.models.order import UNKNOWN_TRACKING_CODE, Money, OrderDraft
from parcelwatch.utils.hash import derive_order_id
from parcelwatch.utils.status_text import StatusClass, StatusSource, classify_status

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "Đang xử lý"
PLACEHOLDER_PRODUCT = "Sản phẩm"
MIN_ORDER_ID_LENGTH = 3

EXPIRED_MARKERS = ("Cookie Hết Hạn", "Error 19")

_TBODY_RE = re.compile(r"<tbody>([\s\S]*?)</tbody>", re.IGNORECASE)
# Upstream emits class='order-id>'123 with the closing quote misplaced
_BROKEN_CLASS_RE = re.compile(r"class=(['\"])(order-id|tracking)>\1", re.IGNORECASE)
_MODEL_RE = re.compile(r"^\((.+)\)$", re.DOTALL)
_AMOUNT_RE = re.compile(r"x\s*(\d+)", re.IGNORECASE)
_PHONE_RE = re.compile(r"(\d{10,12})")
_IMAGE_ID_RE = re.compile(r"/file/([^'\"?]+)")
_TRACKING_RE = re.compile(r"[A-Za-z0-9]+")


def _text(node: Tag | None) -> str | None:
    if node is None:
        return None
    text = node.get_text(strip=True)
    return text or None


def _to_int(text: str | None) -> int | None:
    if not text:
        return None
    digits = re.sub(r"[^\d]", "", text)
    return int(digits) if digits else None


def _flags(status: str) -> tuple[bool, bool]:
    status_class = classify_status(StatusSource.MARKETPLACE, status)
    return (
        status_class == StatusClass.DELIVERED,
        status_class == StatusClass.CANCELLED,
    )


def _is_valid_id(order_id: Any) -> bool:
    return bool(order_id) and len(str(order_id)) >= MIN_ORDER_ID_LENGTH


def repair_markup(html: str) -> str:
    """Fix the misplaced closing quote in order-id/tracking class attributes."""
    return _BROKEN_CLASS_RE.sub(r'class="\2">', html)


def parse_html(html: str) -> list[OrderDraft]:
    """
    Parse the HTML order table.

    Raises:
        CredentialExpired: The page carries the expired-credential banner
    """
    if any(marker in html for marker in EXPIRED_MARKERS):
        raise CredentialExpired("Marketplace reported the credential as expired")

    match = _TBODY_RE.search(html)
    if not match:
        logger.debug("No order table in marketplace response")
        return []

    soup = BeautifulSoup(
        f"<table><tbody>{repair_markup(match.group(1))}</tbody></table>",
        "html.parser",
    )

    drafts = []
    for row in soup.find_all("tr"):
        if row.find("th"):
            continue
        try:
            draft = _parse_row(row)
        except (ValueError, AttributeError) as e:
            logger.warning("Skipping unparseable order row: %s", e)
            continue
        if draft is not None:
            drafts.append(draft)

    return drafts


def _parse_row(row: Tag) -> OrderDraft | None:
    order_id = re.sub(r"[^\d]", "", _text(row.select_one(".order-id")) or "")
    if not _is_valid_id(order_id):
        return None

    tracking_number = UNKNOWN_TRACKING_CODE
    tracking_text = _text(row.select_one(".tracking"))
    if tracking_text:
        tracking_match = _TRACKING_RE.match(tracking_text)
        if tracking_match:
            tracking_number = tracking_match.group(0)

    status = _text(row.select_one(".status-badge")) or DEFAULT_STATUS

    phone = None
    phone_text = _text(row.select_one(".addr-phone"))
    if phone_text:
        phone_match = _PHONE_RE.search(phone_text)
        phone = phone_match.group(1) if phone_match else None

    product = PLACEHOLDER_PRODUCT
    quantity = 1
    image = None
    products = row.select_one(".prod-list")
    if products is not None:
        product = _text(products.find("span")) or PLACEHOLDER_PRODUCT
        for small in products.find_all("small"):
            small_text = small.get_text(strip=True)
            model_match = _MODEL_RE.match(small_text)
            amount_match = _AMOUNT_RE.fullmatch(small_text)
            if model_match:
                product = f"{product} - {model_match.group(1).strip()}"
            elif amount_match:
                quantity = int(amount_match.group(1))
        img = products.find("img")
        if img is not None and img.get("src"):
            image_match = _IMAGE_ID_RE.search(img["src"])
            image = image_match.group(1) if image_match else img["src"]

    total = _to_int(_text(row.select_one(".price-value-total")))
    is_completed, is_cancelled = _flags(status)

    return OrderDraft(
        order_id=order_id,
        ordinal=_to_int(_text(row.select_one(".stt"))),
        tracking_number=tracking_number,
        status=status,
        shop=_text(row.select_one(".shop-badge")),
        product=product,
        quantity=quantity,
        total_price=Money(amount=Decimal(total)) if total is not None else None,
        image=image,
        recipient_name=_text(row.select_one(".addr-name strong")),
        recipient_phone=phone,
        is_completed=is_completed,
        is_cancelled=is_cancelled,
    )


def parse_json(data: dict) -> list[OrderDraft]:
    """
    Parse the legacy JSON shape.

    ``allOrderDetails[i]`` holds the orders of the i-th credential of the
    batch, so its 1-based index is the record ordinal.
    """
    drafts = []
    for index, group in enumerate(data.get("allOrderDetails") or [], start=1):
        for order in group.get("orderDetails") or []:
            tracking_number = order.get("tracking_number") or UNKNOWN_TRACKING_CODE
            order_id = order.get("order_id")
            if not order_id and tracking_number != UNKNOWN_TRACKING_CODE:
                order_id = derive_order_id(tracking_number)
            if not _is_valid_id(order_id):
                continue

            product_info = (order.get("product_info") or [{}])[0]
            name = product_info.get("name") or PLACEHOLDER_PRODUCT
            model = product_info.get("model_name")
            quantity = product_info.get("amount") or 1
            unit_price = None
            if product_info.get("item_price"):
                unit_price = Money(
                    amount=Decimal(product_info["item_price"]) / Decimal(100000)
                )

            status = order.get("tracking_info_description") or DEFAULT_STATUS
            is_completed, is_cancelled = _flags(status)
            address = order.get("address") or {}
            shop_id = product_info.get("shop_id")

            drafts.append(
                OrderDraft(
                    order_id=str(order_id),
                    ordinal=index,
                    tracking_number=tracking_number,
                    status=status,
                    shop=f"Shop ID {shop_id}" if shop_id else None,
                    product=f"{name} - {model}" if model else name,
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=(
                        Money(amount=unit_price.amount * quantity)
                        if unit_price
                        else None
                    ),
                    image=product_info.get("image"),
                    recipient_name=address.get("shipping_name"),
                    recipient_phone=address.get("shipping_phone"),
                    is_completed=is_completed,
                    is_cancelled=is_cancelled,
                )
            )

    return drafts


def parse_response(content_type: str, body: str | dict) -> list[OrderDraft]:
    """
    Parse a marketplace response by content type.

    Args:
        content_type: Response Content-Type header
        body: Response text, or an already decoded JSON document

    Returns:
        Parsed drafts (records with missing or too-short ids discarded)
    """
    if isinstance(body, dict):
        return parse_json(body)
    if "text/html" in (content_type or ""):
        return parse_html(body)
    return parse_json(json.loads(body))


def is_plausible(drafts: list[OrderDraft]) -> bool:
    """
    Whether a poll result looks like real data.

    A dead credential still yields rows, but only with placeholder products.
    """
    return any(
        draft.product
        and draft.product != PLACEHOLDER_PRODUCT
        and not draft.product.startswith(f"{PLACEHOLDER_PRODUCT} -")
        for draft in drafts
    )
