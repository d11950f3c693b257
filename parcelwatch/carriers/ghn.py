"""
GHN (Giao Hang Nhanh) public tracking client.

GHN returns logs oldest-first: ``tracking_logs[-1]`` is the current status.
A 204 response or a body without data means the code is not a GHN order.
"""

import requests

from parcelwatch.carriers.base import USER_AGENT, CarrierClient, iso_to_datetime
from parcelwatch.config import GHN_API_URL
from parcelwatch.models.carrier import CarrierResult, CarrierStatus, NotThisCarrier
from parcelwatch.models.order import Carrier, TrackingEvent
from parcelwatch.utils.status_text import StatusClass, StatusSource, classify_status


def _log_location(log: dict) -> str | None:
    location = log.get("location") or {}
    return location.get("address") or None


class GHNClient(CarrierClient):
    """Client for the GHN public tracking-logs API."""

    carrier = Carrier.GHN

    def __init__(self, api_url: str = GHN_API_URL, **kwargs):
        super().__init__(api_url, **kwargs)

    def _post(self, tracking_number: str) -> requests.Response:
        return self.session.post(
            self.api_url,
            json={"order_code": tracking_number},
            headers={
                "Origin": "https://donhang.ghn.vn",
                "Referer": "https://donhang.ghn.vn/",
                "User-Agent": USER_AGENT,
            },
            timeout=self.timeout,
        )

    def _parse_response(
        self, tracking_number: str, response: requests.Response
    ) -> CarrierResult:
        if response.status_code >= 500:
            return self._error(tracking_number, f"HTTP {response.status_code}")

        if response.status_code == 204 or not response.content:
            return NotThisCarrier(
                carrier=self.carrier,
                tracking_number=tracking_number,
                reason="Not a GHN order",
            )

        if response.status_code >= 400:
            return self._error(tracking_number, f"HTTP {response.status_code}")

        body = response.json()
        if not isinstance(body, dict):
            return self._error(tracking_number, "Response body is not an object")
        data = body.get("data")
        if data is not None and not isinstance(data, dict):
            return self._error(tracking_number, "Unexpected data field")
        logs = (data or {}).get("tracking_logs") or []

        if body.get("code") != 200 or not logs:
            if not data:
                return NotThisCarrier(
                    carrier=self.carrier,
                    tracking_number=tracking_number,
                    reason=body.get("message") or "Not a GHN order",
                )
            return self._error(
                tracking_number, body.get("message") or "No tracking data found"
            )

        latest = logs[-1]
        status_slug = latest.get("status")

        history = [
            TrackingEvent(
                timestamp=iso_to_datetime(log.get("action_at")),
                code=log.get("action_code"),
                status=log.get("status"),
                description=log.get("status_name"),
                location=_log_location(log),
            )
            for log in logs
        ]

        return CarrierStatus(
            carrier=self.carrier,
            tracking_number=tracking_number,
            delivered=classify_status(StatusSource.GHN, status_slug)
            == StatusClass.DELIVERED,
            status_code=latest.get("action_code"),
            status_text=latest.get("status_name") or status_slug or "",
            status_time=iso_to_datetime(latest.get("action_at")),
            current_location=_log_location(latest),
            next_location=None,
            history=history,
        )
