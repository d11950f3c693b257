"""
Base class for carrier tracking clients.

Each client turns a tracking code into exactly one normalized result:
CarrierStatus, NotThisCarrier or CarrierError. Clients never raise for
upstream failures.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import requests

from parcelwatch.config import CARRIER_TIMEOUT_SECONDS
from parcelwatch.models.carrier import CarrierError, CarrierResult
from parcelwatch.models.order import Carrier

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class CarrierClient(ABC):
    """Tracking API client for a single carrier."""

    carrier: Carrier

    def __init__(
        self,
        api_url: str,
        timeout: float = CARRIER_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_status(self, tracking_number: str) -> CarrierResult:
        """
        Fetch and normalize the current status of a shipment.

        Args:
            tracking_number: Tracking code to look up

        Returns:
            CarrierStatus, NotThisCarrier or CarrierError
        """
        try:
            response = self._post(tracking_number)
        except requests.Timeout:
            logger.warning("%s lookup timed out for %s", self.carrier, tracking_number)
            return self._error(tracking_number, "Request timed out")
        except requests.RequestException as e:
            logger.warning("%s lookup failed for %s: %s", self.carrier, tracking_number, e)
            return self._error(tracking_number, str(e))

        try:
            return self._parse_response(tracking_number, response)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                "%s returned an unexpected payload for %s: %s",
                self.carrier,
                tracking_number,
                e,
            )
            return self._error(tracking_number, f"Unexpected response: {e}")

    @abstractmethod
    def _post(self, tracking_number: str) -> requests.Response:
        """Issue the tracking request."""

    @abstractmethod
    def _parse_response(
        self, tracking_number: str, response: requests.Response
    ) -> CarrierResult:
        """Map the HTTP response to a normalized result."""

    def _error(self, tracking_number: str, reason: str) -> CarrierError:
        return CarrierError(
            carrier=self.carrier, tracking_number=tracking_number, reason=reason
        )


def unix_to_datetime(value: Any) -> datetime | None:
    """Convert a unix timestamp (seconds) to an aware UTC datetime."""
    if value in (None, "", 0):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def iso_to_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
