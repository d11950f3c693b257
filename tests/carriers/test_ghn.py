"""
Tests for the GHN tracking client.
"""

from unittest.mock import Mock

import pytest
import requests

from parcelwatch.carriers.ghn import GHNClient
from parcelwatch.models.carrier import CarrierError, CarrierStatus, NotThisCarrier
from parcelwatch.models.order import Carrier

CODE = "GHNVN12345678"


def _response(payload=None, status_code: int = 200, content: bytes = b"{}"):
    response = Mock()
    response.status_code = status_code
    response.content = content
    response.json.return_value = payload
    return response


LOGS = [
    {
        "status": "picked",
        "status_name": "Đã lấy hàng",
        "action_code": "PICKED",
        "action_at": "2024-06-01T08:00:00Z",
        "location": {"address": "Kho Tân Bình"},
    },
    {
        "status": "delivering",
        "status_name": "Đang giao hàng",
        "action_code": "DELIVERING",
        "action_at": "2024-06-02T09:30:00+07:00",
        "location": {"address": "Bưu cục Quận 3"},
    },
]


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return GHNClient(api_url="https://ghn.test/logs", session=session)


class TestGHNClient:
    def test_posts_order_code(self, client, session):
        session.post.return_value = _response({"code": 200, "data": {"tracking_logs": LOGS}})

        client.fetch_status(CODE)

        kwargs = session.post.call_args.kwargs
        assert kwargs["json"] == {"order_code": CODE}
        assert kwargs["headers"]["Origin"] == "https://donhang.ghn.vn"

    def test_in_transit(self, client, session):
        session.post.return_value = _response({"code": 200, "data": {"tracking_logs": LOGS}})

        result = client.fetch_status(CODE)

        assert isinstance(result, CarrierStatus)
        assert result.carrier == Carrier.GHN
        assert result.delivered is False
        assert result.status_text == "Đang giao hàng"
        assert result.current_location == "Bưu cục Quận 3"
        assert len(result.history) == 2

    def test_delivered(self, client, session):
        logs = LOGS + [
            {
                "status": "delivered",
                "status_name": "Giao hàng thành công",
                "action_at": "2024-06-02T15:00:00Z",
            }
        ]
        session.post.return_value = _response({"code": 200, "data": {"tracking_logs": logs}})

        result = client.fetch_status(CODE)

        assert result.delivered is True
        assert result.current_location is None

    def test_no_content_is_not_this_carrier(self, client, session):
        session.post.return_value = _response(status_code=204, content=b"")

        assert isinstance(client.fetch_status(CODE), NotThisCarrier)

    def test_missing_data_is_not_this_carrier(self, client, session):
        session.post.return_value = _response({"code": 400, "message": "not found"})

        result = client.fetch_status(CODE)

        assert isinstance(result, NotThisCarrier)
        assert result.reason == "not found"

    def test_data_without_logs_is_error(self, client, session):
        session.post.return_value = _response({"code": 200, "data": {"tracking_logs": []}})

        assert isinstance(client.fetch_status(CODE), CarrierError)

    def test_server_error(self, client, session):
        session.post.return_value = _response(status_code=502)

        assert isinstance(client.fetch_status(CODE), CarrierError)

    def test_connection_error(self, client, session):
        session.post.side_effect = requests.ConnectionError("refused")

        assert isinstance(client.fetch_status(CODE), CarrierError)

    def test_non_object_body_is_error(self, client, session):
        session.post.return_value = _response([])

        result = client.fetch_status(CODE)

        assert isinstance(result, CarrierError)
        assert result.carrier == Carrier.GHN

    def test_non_object_data_is_error(self, client, session):
        session.post.return_value = _response({"code": 200, "data": ["x"]})

        assert isinstance(client.fetch_status(CODE), CarrierError)
