"""
Webhook notification channel.

Pushes the active order set and delivery announcements to the notifier bot.
Delivery is best effort: failures are logged and never raised into the
reconciliation cycle.
"""

import logging

import requests

from parcelwatch.config import WEBHOOK_BOT_URL, WEBHOOK_SECRET, WEBHOOK_TIMEOUT_SECONDS
from parcelwatch.models.order import OrderRecord
from parcelwatch.utils.logging import log_fields

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """HTTP client for the notifier bot webhooks."""

    def __init__(
        self,
        base_url: str = WEBHOOK_BOT_URL,
        secret: str = WEBHOOK_SECRET,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.secret = secret
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: dict) -> bool:
        try:
            response = self.session.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"X-Webhook-Secret": self.secret},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Webhook %s failed: %s", path, e)
            return False

        if not response.ok:
            logger.error(
                "Webhook %s rejected",
                path,
                extra=log_fields(status_code=response.status_code, body=response.text[:200]),
            )
            return False

        return True

    def send_active_orders(self, orders: list[OrderRecord]) -> bool:
        """
        Broadcast the full active order set.

        Returns:
            True if the bot accepted the payload; False on failure or when
            there is nothing to send
        """
        if not orders:
            logger.debug("No active orders to send")
            return False

        sent = self._post(
            "/webhook/orders",
            {"orders": [order.model_dump(mode="json") for order in orders]},
        )
        if sent:
            logger.info("Sent %d active orders to the notifier", len(orders))
        return sent

    def send_delivered(self, order: OrderRecord) -> bool:
        """Announce a single delivered order."""
        sent = self._post("/webhook/delivered", {"order": order.model_dump(mode="json")})
        if sent:
            logger.info(
                "Sent delivery notification", extra=log_fields(order_id=order.id)
            )
        return sent
