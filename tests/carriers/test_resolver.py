"""
Tests for carrier resolution.
"""

from unittest.mock import Mock

import pytest

from parcelwatch.carriers import fetch_tracking_status
from parcelwatch.carriers.ghn import GHNClient
from parcelwatch.carriers.resolver import (
    carrier_of_method,
    detect_carrier,
    has_tracking_code,
    tracking_method_of,
)
from parcelwatch.carriers.spx import SPXClient
from parcelwatch.models.carrier import CarrierError, NotThisCarrier
from parcelwatch.models.order import UNKNOWN_TRACKING_CODE, Carrier, TrackingMethod


class TestDetectCarrier:
    @pytest.mark.parametrize(
        "code",
        ["SPXVN068797458621", "spxvn068797458621", "VN123456789012"],
    )
    def test_spx_codes(self, code):
        assert detect_carrier(code) == Carrier.SPX

    @pytest.mark.parametrize("code", ["GHNVN12345678", "LBK7XQ9R", "GYD6KH3F8"])
    def test_other_well_formed_codes_default_to_ghn(self, code):
        assert detect_carrier(code) == Carrier.GHN

    @pytest.mark.parametrize(
        "code", [None, "", "   ", UNKNOWN_TRACKING_CODE, "AB-12", "abc", "SPX VN 123"]
    )
    def test_no_carrier(self, code):
        assert detect_carrier(code) is None


class TestHasTrackingCode:
    def test_placeholder_is_not_a_code(self):
        assert has_tracking_code(UNKNOWN_TRACKING_CODE) is False

    def test_real_code(self):
        assert has_tracking_code(" SPXVN068797458621 ") is True


class TestTrackingMethod:
    def test_round_trip(self):
        for carrier in Carrier:
            assert carrier_of_method(tracking_method_of(carrier)) == carrier

    def test_unknown_carrier_awaits_code(self):
        assert tracking_method_of(None) == TrackingMethod.AWAITING_CODE
        assert tracking_method_of("DHL") == TrackingMethod.AWAITING_CODE

    def test_unverified_methods_have_no_carrier(self):
        assert carrier_of_method(TrackingMethod.UNSUPPORTED) is None
        assert carrier_of_method(TrackingMethod.AWAITING_CODE) is None
        assert carrier_of_method(42) is None


class TestFetchTrackingStatus:
    @pytest.fixture
    def clients(self):
        return {Carrier.SPX: Mock(spec=SPXClient), Carrier.GHN: Mock(spec=GHNClient)}

    def test_dispatches_to_resolved_carrier(self, clients):
        clients[Carrier.SPX].fetch_status.return_value = NotThisCarrier(
            carrier=Carrier.SPX, tracking_number="SPXVN068797458621"
        )

        result = fetch_tracking_status("SPXVN068797458621", clients)

        assert result.carrier == Carrier.SPX
        clients[Carrier.SPX].fetch_status.assert_called_once_with("SPXVN068797458621")
        clients[Carrier.GHN].fetch_status.assert_not_called()

    def test_malformed_code_is_not_this_carrier(self, clients):
        result = fetch_tracking_status("AB-12", clients)

        assert isinstance(result, NotThisCarrier)
        assert result.carrier is None
        clients[Carrier.SPX].fetch_status.assert_not_called()
        clients[Carrier.GHN].fetch_status.assert_not_called()

    def test_missing_client_is_error(self, clients):
        del clients[Carrier.GHN]

        result = fetch_tracking_status("GHNVN12345678", clients)

        assert isinstance(result, CarrierError)
        assert result.carrier == Carrier.GHN
