"""
Tests for the domain models.
"""

from decimal import Decimal

from pydantic import TypeAdapter

from parcelwatch.models.carrier import CarrierError, CarrierResult, NotThisCarrier
from parcelwatch.models.cycle import CycleSummary, CycleTrigger, OrderOutcome
from parcelwatch.models.order import Money, OrderDraft, OrderRecord, TrackingMethod
from parcelwatch.models.session import MarketplaceSession, SessionSummary


class TestOrderRecord:
    def test_from_draft(self):
        draft = OrderDraft(
            order_id="224004746255220",
            ordinal=2,
            tracking_number="SPXVN068797458621",
            status="Đang vận chuyển",
            product="Bình giữ nhiệt - Màu đỏ",
            quantity=2,
            total_price=Money(amount=Decimal("17080")),
        )

        order = OrderRecord.from_draft(draft, "s1")

        assert order.id == draft.order_id
        assert order.session_id == "s1"
        assert order.tracking_method == TrackingMethod.AWAITING_CODE
        assert order.carrier is None
        assert order.total_price.amount == Decimal("17080")

    def test_money_str(self):
        assert str(Money(amount=Decimal("1708000"))) == "1,708,000 VND"


class TestCarrierResult:
    def test_discriminated_by_kind(self):
        adapter = TypeAdapter(CarrierResult)

        not_found = adapter.validate_python(
            {"kind": "not_this_carrier", "carrier": "GHN", "tracking_number": "GHNVN1"}
        )
        error = adapter.validate_python(
            {"kind": "error", "tracking_number": "GHNVN1", "reason": "HTTP 503"}
        )

        assert isinstance(not_found, NotThisCarrier)
        assert isinstance(error, CarrierError)


class TestCycleSummary:
    def test_record_folds_outcomes(self):
        summary = CycleSummary(trigger=CycleTrigger.SCHEDULED)

        for outcome in [
            OrderOutcome.NEW,
            OrderOutcome.UPDATED,
            OrderOutcome.TRACKING_FOUND,
            OrderOutcome.UNSUPPORTED,
            OrderOutcome.UNCHANGED,
            OrderOutcome.DELIVERED,
            OrderOutcome.CANCELLED,
            OrderOutcome.ERRORED,
            OrderOutcome.INCONSISTENT,
        ]:
            summary.record(outcome)

        assert (
            summary.new,
            summary.updated,
            summary.delivered,
            summary.cancelled,
            summary.errored,
        ) == (1, 3, 1, 1, 2)


class TestSessionSummary:
    def test_masks_credential(self):
        session = MarketplaceSession(id="s1", credential="SPC_ST=.abcdefghijklmnop")

        summary = SessionSummary.from_session(session)

        assert summary.credential_preview == "SPC_ST=.abcd..."
        assert "credential" not in summary.model_dump()
