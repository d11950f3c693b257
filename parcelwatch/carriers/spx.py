"""
SPX Express (Shopee Express) tracking client.

The SPX proxy returns records newest-first: ``records[0]`` is the current
status.
"""

import requests

from parcelwatch.carriers.base import USER_AGENT, CarrierClient, unix_to_datetime
from parcelwatch.config import SPX_API_URL
from parcelwatch.models.carrier import CarrierResult, CarrierStatus, NotThisCarrier
from parcelwatch.models.order import Carrier, TrackingEvent
from parcelwatch.utils.status_text import StatusClass, StatusSource, classify_status

# Milestone code of the "Delivered" stage
SPX_DELIVERED_MILESTONE = 8


def _location_name(location: dict | None) -> str | None:
    if not location:
        return None
    return location.get("location_name") or None


class SPXClient(CarrierClient):
    """Client for the SPX tracking proxy."""

    carrier = Carrier.SPX

    def __init__(self, api_url: str = SPX_API_URL, **kwargs):
        super().__init__(api_url, **kwargs)

    def _post(self, tracking_number: str) -> requests.Response:
        return self.session.post(
            self.api_url,
            json={"tracking_id": tracking_number},
            headers={"User-Agent": USER_AGENT},
            timeout=self.timeout,
        )

    def _parse_response(
        self, tracking_number: str, response: requests.Response
    ) -> CarrierResult:
        if response.status_code >= 400:
            return self._error(tracking_number, f"HTTP {response.status_code}")

        data = response.json()
        if not isinstance(data, dict):
            return self._error(tracking_number, "Response body is not an object")
        if data.get("message") != "success":
            return self._error(
                tracking_number, f"SPX API error: {data.get('message')!r}"
            )

        tracking_info = (data.get("data") or {}).get("sls_tracking_info")
        if tracking_info is None:
            return self._error(tracking_number, "Missing sls_tracking_info")

        records = tracking_info.get("records")
        if records is not None and len(records) == 0:
            # The proxy answered and explicitly has nothing for this code
            return NotThisCarrier(carrier=self.carrier, tracking_number=tracking_number)
        if not records:
            return self._error(tracking_number, "Missing tracking records")

        latest = records[0]
        status_name = latest.get("tracking_name")
        delivered = (
            latest.get("milestone_code") == SPX_DELIVERED_MILESTONE
            or classify_status(StatusSource.SPX, status_name) == StatusClass.DELIVERED
        )

        history = [
            TrackingEvent(
                timestamp=unix_to_datetime(record.get("actual_time")),
                code=record.get("tracking_code"),
                status=record.get("tracking_name"),
                description=record.get("buyer_description"),
                location=_location_name(record.get("current_location")),
            )
            for record in reversed(records)
        ]

        return CarrierStatus(
            carrier=self.carrier,
            tracking_number=tracking_number,
            delivered=delivered,
            status_code=latest.get("tracking_code"),
            status_text=latest.get("buyer_description") or status_name or "",
            status_time=unix_to_datetime(latest.get("actual_time")),
            current_location=_location_name(latest.get("current_location")),
            next_location=_location_name(latest.get("next_location")),
            history=history,
        )
