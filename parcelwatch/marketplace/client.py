"""
Marketplace polling client.

Talks to the order-scraping endpoint that proxies the marketplace. Several
credentials can be polled in one request; records come back tagged with
the 1-based position of the credential that produced them.
"""

import logging

from curl_cffi import requests

from parcelwatch.config import (
    MARKETPLACE_API_URL,
    MARKETPLACE_BASE_TIMEOUT_SECONDS,
    MARKETPLACE_BATCH_SIZE,
    MARKETPLACE_TIMEOUT_PER_CREDENTIAL_SECONDS,
    MARKETPLACE_TOKEN,
)
from parcelwatch.marketplace.errors import MarketplaceAuthError, MarketplaceError
from parcelwatch.marketplace.parser import parse_response
from parcelwatch.models.order import OrderDraft

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "SPC_ST"


def normalize_credential(credential: str) -> str:
    """
    Reduce a pasted cookie string to ``SPC_ST=<value>``.

    Accepts a full cookie header, a bare ``SPC_ST=...`` pair or the raw value.
    """
    credential = credential.strip()
    prefix = f"{CREDENTIAL_KEY}="
    if prefix in credential:
        value = credential.split(prefix, 1)[1].split(";", 1)[0].strip()
    else:
        value = credential
    return f"{prefix}{value}"


class MarketplaceClient:
    """Client for the marketplace order-scraping endpoint."""

    def __init__(
        self,
        api_url: str = MARKETPLACE_API_URL,
        token: str = MARKETPLACE_TOKEN,
        batch_size: int = MARKETPLACE_BATCH_SIZE,
    ):
        self.api_url = api_url
        self.token = token
        self.batch_size = batch_size

    def _timeout(self, count: int) -> float:
        return (
            MARKETPLACE_BASE_TIMEOUT_SECONDS
            + MARKETPLACE_TIMEOUT_PER_CREDENTIAL_SECONDS * count
        )

    def fetch_batch(self, credentials: list[str]) -> list[OrderDraft]:
        """
        Poll up to ``batch_size`` credentials in one request.

        Args:
            credentials: Credentials in batch order

        Returns:
            Parsed drafts; ``ordinal`` points into ``credentials`` (1-based)

        Raises:
            ValueError: Empty batch or more than ``batch_size`` credentials
            CredentialExpired: The response carries the expired banner
            MarketplaceAuthError: Our service token was rejected
            MarketplaceError: Network or HTTP failure
        """
        if not credentials:
            raise ValueError("At least one credential is required")
        if len(credentials) > self.batch_size:
            raise ValueError(
                f"Batch of {len(credentials)} exceeds the limit of {self.batch_size}"
            )

        form = {
            "cookie": "\n".join(normalize_credential(c) for c in credentials),
            "proxy": "",
        }
        cookies = {"token": self.token} if self.token else None

        try:
            response = requests.post(
                self.api_url,
                data=form,
                cookies=cookies,
                allow_redirects=False,
                timeout=self._timeout(len(credentials)),
                impersonate="chrome",
            )
        except requests.RequestsError as e:
            logger.warning("Marketplace request failed: %s", e)
            raise MarketplaceError(str(e)) from e

        if response.status_code == 302:
            logger.error("Marketplace service token expired or invalid")
            raise MarketplaceAuthError("Marketplace service token expired")
        if response.status_code >= 400:
            raise MarketplaceError(f"Marketplace API error: HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        try:
            drafts = parse_response(content_type, response.text)
        except ValueError as e:
            raise MarketplaceError(f"Unreadable marketplace response: {e}") from e

        if len(credentials) == 1:
            for draft in drafts:
                if draft.ordinal is None:
                    draft.ordinal = 1

        logger.info(
            "Fetched %d marketplace records for %d credentials",
            len(drafts),
            len(credentials),
        )
        return drafts

    def fetch_orders(self, credential: str) -> list[OrderDraft]:
        """Poll a single credential."""
        return self.fetch_batch([credential])
