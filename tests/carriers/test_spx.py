"""
Tests for the SPX tracking client.
"""

from unittest.mock import Mock

import pytest
import requests

from parcelwatch.carriers.spx import SPXClient
from parcelwatch.models.carrier import CarrierError, CarrierStatus, NotThisCarrier
from parcelwatch.models.order import Carrier

CODE = "SPXVN068797458621"


def _response(payload, status_code: int = 200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _payload(records):
    return {"message": "success", "data": {"sls_tracking_info": {"records": records}}}


RECORDS = [
    {
        "tracking_code": "F980",
        "tracking_name": "Delivered",
        "buyer_description": "Giao hàng thành công",
        "milestone_code": 8,
        "actual_time": 1717400000,
        "current_location": {"location_name": "Hub Quận 7"},
    },
    {
        "tracking_code": "F600",
        "tracking_name": "Out for delivery",
        "buyer_description": "Đang giao hàng",
        "milestone_code": 6,
        "actual_time": 1717390000,
        "current_location": {"location_name": "Hub Quận 7"},
        "next_location": {"location_name": "Người nhận"},
    },
]


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return SPXClient(api_url="https://spx.test/track", session=session)


class TestSPXClient:
    def test_posts_tracking_id(self, client, session):
        session.post.return_value = _response(_payload(RECORDS))

        client.fetch_status(CODE)

        assert session.post.call_args.kwargs["json"] == {"tracking_id": CODE}

    def test_delivered(self, client, session):
        session.post.return_value = _response(_payload(RECORDS))

        result = client.fetch_status(CODE)

        assert isinstance(result, CarrierStatus)
        assert result.carrier == Carrier.SPX
        assert result.delivered is True
        assert result.status_text == "Giao hàng thành công"
        assert result.current_location == "Hub Quận 7"
        assert [e.code for e in result.history] == ["F600", "F980"]

    def test_in_transit(self, client, session):
        session.post.return_value = _response(_payload(RECORDS[1:]))

        result = client.fetch_status(CODE)

        assert result.delivered is False
        assert result.next_location == "Người nhận"
        assert result.status_time is not None

    def test_delivered_by_name_without_milestone(self, client, session):
        record = dict(RECORDS[0], milestone_code=None)
        session.post.return_value = _response(_payload([record]))

        assert client.fetch_status(CODE).delivered is True

    def test_empty_records_is_not_this_carrier(self, client, session):
        session.post.return_value = _response(_payload([]))

        assert isinstance(client.fetch_status(CODE), NotThisCarrier)

    def test_error_message(self, client, session):
        session.post.return_value = _response({"message": "rate limited"})

        assert isinstance(client.fetch_status(CODE), CarrierError)

    def test_missing_tracking_info(self, client, session):
        session.post.return_value = _response({"message": "success", "data": {}})

        assert isinstance(client.fetch_status(CODE), CarrierError)

    def test_http_error(self, client, session):
        session.post.return_value = _response({}, status_code=503)

        assert isinstance(client.fetch_status(CODE), CarrierError)

    def test_timeout(self, client, session):
        session.post.side_effect = requests.Timeout()

        result = client.fetch_status(CODE)

        assert isinstance(result, CarrierError)
        assert result.reason == "Request timed out"

    def test_malformed_json(self, client, session):
        response = _response(None)
        response.json.side_effect = ValueError("Expecting value")
        session.post.return_value = response

        assert isinstance(client.fetch_status(CODE), CarrierError)

    def test_non_object_body_is_error(self, client, session):
        session.post.return_value = _response([])

        result = client.fetch_status(CODE)

        assert isinstance(result, CarrierError)
        assert result.carrier == Carrier.SPX

    def test_malformed_record_is_error(self, client, session):
        session.post.return_value = _response(_payload(["not-a-record"]))

        assert isinstance(client.fetch_status(CODE), CarrierError)
