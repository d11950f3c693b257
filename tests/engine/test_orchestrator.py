"""
End-to-end reconciliation cycles against the in-memory store.
"""

import pytest

from parcelwatch.engine.errors import (
    CycleInProgressError,
    SessionDisabledError,
    SessionNotFoundError,
)
from parcelwatch.marketplace.errors import CredentialExpired, MarketplaceError
from parcelwatch.models.carrier import NotThisCarrier
from parcelwatch.models.cycle import CycleTrigger, PollOutcome
from parcelwatch.models.event import EventType
from parcelwatch.models.order import UNKNOWN_TRACKING_CODE, Carrier, TrackingMethod
from parcelwatch.models.session import SessionStatus

SPX_CODE = "SPXVN068797458621"
ORDER_ID = "224004746255220"


class TestRunCycle:
    """Scheduled cycles over active sessions"""

    def test_new_order_is_tracked_and_broadcast(
        self, orchestrator, store, marketplace, carriers, notifier, make_draft, make_status
    ):
        store.add_session("s1")
        marketplace.fetch_batch.return_value = [make_draft(tracking_number=SPX_CODE)]
        carriers[Carrier.SPX].fetch_status.return_value = make_status()

        summary = orchestrator.run_cycle()

        assert summary.skipped is False
        assert summary.sessions_polled == 1
        assert summary.new == 1
        assert store.order().tracking_method == TrackingMethod.SPX
        notifier.send_active_orders.assert_called_once()
        assert [o.id for o in notifier.send_active_orders.call_args.args[0]] == [ORDER_ID]

    def test_repeated_cycles_are_idempotent(
        self, orchestrator, store, marketplace, carriers, make_draft, make_status, drain
    ):
        store.add_session("s1")
        marketplace.fetch_batch.return_value = [make_draft(tracking_number=SPX_CODE)]
        carriers[Carrier.SPX].fetch_status.return_value = make_status()

        orchestrator.run_cycle()
        drain()
        summary = orchestrator.run_cycle()

        assert (summary.new, summary.updated, summary.delivered, summary.cancelled) == (
            0,
            0,
            0,
            0,
        )
        assert drain() == [EventType.CYCLE_COMPLETED]

    def test_cached_order_gets_verified_code(
        self, orchestrator, store, marketplace, carriers, make_draft, make_status
    ):
        store.add_session("s1")
        store.add_order()
        marketplace.fetch_batch.return_value = [
            make_draft(tracking_number="SPXVN000111222333")
        ]
        carriers[Carrier.SPX].fetch_status.return_value = make_status(
            code="SPXVN000111222333"
        )

        summary = orchestrator.run_cycle()

        order = store.order()
        assert summary.updated == 1
        assert order.tracking_method == TrackingMethod.SPX
        assert order.carrier == Carrier.SPX
        assert order.tracking_number == "SPXVN000111222333"

    def test_denied_code_falls_back_to_marketplace(
        self, orchestrator, store, marketplace, carriers, make_draft
    ):
        store.add_session("s1")
        store.add_order()
        marketplace.fetch_batch.return_value = [
            make_draft(tracking_number="SPXVN000111222333")
        ]
        carriers[Carrier.SPX].fetch_status.return_value = NotThisCarrier(
            carrier=Carrier.SPX, tracking_number="SPXVN000111222333"
        )

        orchestrator.run_cycle()
        orchestrator.run_cycle()

        order = store.order()
        assert order.tracking_method == TrackingMethod.UNSUPPORTED
        assert order.carrier is None
        assert order.tracking_number == "SPXVN000111222333"
        assert carriers[Carrier.SPX].fetch_status.call_count == 1

    def test_carrier_delivery_is_notified_once(
        self, orchestrator, store, marketplace, carriers, notifier, make_draft, make_status
    ):
        store.add_session("s1")
        store.add_order(tracking_number=SPX_CODE, method=TrackingMethod.SPX)
        marketplace.fetch_batch.return_value = [make_draft(tracking_number=SPX_CODE)]
        carriers[Carrier.SPX].fetch_status.return_value = make_status(
            delivered=True, status_text="Giao hàng thành công"
        )

        first = orchestrator.run_cycle()
        second = orchestrator.run_cycle()

        assert first.delivered == 1
        assert first.sessions_purged == 1
        assert second.delivered == 0
        assert store.is_delivered()
        notifier.send_delivered.assert_called_once()

    def test_marketplace_completion_is_delivered(
        self, orchestrator, store, marketplace, notifier, make_draft
    ):
        store.add_session("s1")
        store.add_order()
        marketplace.fetch_batch.return_value = [
            make_draft(status="Giao hàng thành công", is_completed=True)
        ]

        summary = orchestrator.run_cycle()

        assert summary.delivered == 1
        assert store.order() is None
        notifier.send_delivered.assert_called_once()

    def test_expired_credential_purges_orders(
        self, orchestrator, store, marketplace
    ):
        store.add_session("s1")
        store.add_order("1001", tracking_number=SPX_CODE, method=TrackingMethod.SPX)
        store.add_order("1002")
        store.add_journey(SPX_CODE)
        marketplace.fetch_batch.side_effect = CredentialExpired("expired")

        summary = orchestrator.run_cycle()

        assert summary.sessions_expired == 1
        assert summary.orders_purged == 2
        assert store.orders() == []
        assert store.journey(SPX_CODE) is None
        assert store.session("s1").status == SessionStatus.DISABLED

    def test_cancelled_order_is_purged(self, orchestrator, store, marketplace, make_draft):
        store.add_session("s1")
        store.add_order("1001")
        store.add_order("1002")
        marketplace.fetch_batch.return_value = [
            make_draft("1001", status="Đã hủy", is_cancelled=True),
            make_draft("1002"),
        ]

        summary = orchestrator.run_cycle()

        assert summary.cancelled == 1
        assert [o.id for o in store.orders()] == ["1002"]
        assert store.delivered_count() == 0

    def test_placeholder_data_disables_session(
        self, orchestrator, store, marketplace, make_draft
    ):
        store.add_session("s1")
        store.add_order()
        marketplace.fetch_batch.return_value = [make_draft(product="Sản phẩm")]

        summary = orchestrator.run_cycle()

        assert summary.sessions_disabled == 1
        assert store.session("s1").status == SessionStatus.DISABLED
        assert store.order() is not None

    def test_empty_poll_changes_nothing(self, orchestrator, store, marketplace):
        store.add_session("s1")
        store.add_order()
        marketplace.fetch_batch.return_value = []

        summary = orchestrator.run_cycle()

        assert summary.cancelled == 0
        assert store.order() is not None
        assert store.session("s1").status == SessionStatus.ACTIVE

    def test_pending_sessions_are_not_polled(self, orchestrator, store, marketplace):
        store.add_session("s1", SessionStatus.PENDING)

        orchestrator.run_cycle()

        marketplace.fetch_batch.assert_not_called()

    def test_marketplace_failure_counts_errors(self, orchestrator, store, marketplace):
        store.add_session("s1")
        store.add_session("s2")
        store.add_order()
        marketplace.fetch_batch.side_effect = MarketplaceError("HTTP 502")

        summary = orchestrator.run_cycle()

        assert summary.errored == 2
        assert store.order() is not None
        assert store.session("s1").status == SessionStatus.ACTIVE

    def test_repair_failure_does_not_abort_cycle(
        self, orchestrator, store, marketplace, carriers, make_draft
    ):
        store.add_session("s1")
        store.add_order(tracking_number=SPX_CODE)
        carriers[Carrier.SPX].fetch_status.side_effect = AttributeError(
            "'list' object has no attribute 'get'"
        )
        marketplace.fetch_batch.return_value = [make_draft(tracking_number=SPX_CODE)]

        summary = orchestrator.run_cycle()

        marketplace.fetch_batch.assert_called_once()
        assert summary.sessions_polled == 1
        assert summary.errored >= 1
        assert summary.finished_at is not None

    def test_skipped_while_running(self, orchestrator, marketplace, store, drain):
        store.add_session("s1")

        with orchestrator._lock:
            summary = orchestrator.run_cycle(CycleTrigger.MANUAL)

        assert summary.skipped is True
        assert summary.trigger == CycleTrigger.MANUAL
        marketplace.fetch_batch.assert_not_called()
        assert drain() == [EventType.CYCLE_SKIPPED]


class TestBatching:
    def test_records_are_attributed_by_ordinal(
        self, orchestrator, store, marketplace, make_draft
    ):
        orchestrator.batch_size = 2
        store.add_session("s1")
        store.add_session("s2")
        marketplace.fetch_batch.return_value = [
            make_draft("1001", ordinal=1),
            make_draft("2001", ordinal=2),
            make_draft("9001", ordinal=None),
        ]

        summary = orchestrator.run_cycle()

        assert marketplace.fetch_batch.call_count == 1
        assert summary.unattributed == 1
        assert store.order("1001").session_id == "s1"
        assert store.order("2001").session_id == "s2"
        assert store.order("9001") is None

    def test_batch_expiry_is_resolved_per_session(
        self, orchestrator, store, marketplace, make_draft
    ):
        orchestrator.batch_size = 2
        s1 = store.add_session("s1")
        store.add_session("s2")
        store.add_order("1001", session_id="s1")

        def fetch_batch(credentials):
            if len(credentials) > 1 or credentials == [s1.credential]:
                raise CredentialExpired("expired")
            return [make_draft("2001", tracking_number=UNKNOWN_TRACKING_CODE)]

        marketplace.fetch_batch.side_effect = fetch_batch

        summary = orchestrator.run_cycle()

        assert marketplace.fetch_batch.call_count == 3
        assert summary.sessions_expired == 1
        assert summary.sessions_polled == 1
        assert summary.new == 1
        assert store.session("s1").status == SessionStatus.DISABLED
        assert store.session("s2").status == SessionStatus.ACTIVE
        assert [o.id for o in store.orders()] == ["2001"]


class TestCheckSession:
    def test_pending_session_is_activated(
        self, orchestrator, store, marketplace, make_draft
    ):
        store.add_session("s1", SessionStatus.PENDING)
        marketplace.fetch_orders.return_value = [
            make_draft("1001", status="Đã hủy", is_cancelled=True),
            make_draft("1002"),
        ]

        result = orchestrator.check_session("s1")

        assert result.outcome == PollOutcome.ACTIVATED
        assert result.status == SessionStatus.ACTIVE
        assert [d.order_id for d in result.orders] == ["1002"]
        assert store.session("s1").status == SessionStatus.ACTIVE
        assert store.order("1002") is not None
        assert store.order("1002").tracking_method == TrackingMethod.AWAITING_CODE

    def test_expired_session(self, orchestrator, store, marketplace):
        store.add_session("s1", SessionStatus.PENDING)
        marketplace.fetch_orders.side_effect = CredentialExpired("expired")

        result = orchestrator.check_session("s1")

        assert result.expired is True
        assert result.status == SessionStatus.DISABLED

    def test_transient_failure_is_reported(self, orchestrator, store, marketplace):
        store.add_session("s1", SessionStatus.PENDING)
        marketplace.fetch_orders.side_effect = MarketplaceError("HTTP 502")

        result = orchestrator.check_session("s1")

        assert result.error == "HTTP 502"
        assert result.status == SessionStatus.PENDING

    def test_unknown_session(self, orchestrator, store):
        with pytest.raises(SessionNotFoundError):
            orchestrator.check_session("nope")

    def test_disabled_session(self, orchestrator, store):
        store.add_session("s1", SessionStatus.DISABLED)

        with pytest.raises(SessionDisabledError):
            orchestrator.check_session("s1")

    def test_rejected_while_cycle_runs(self, orchestrator, store):
        store.add_session("s1", SessionStatus.PENDING)

        with orchestrator._lock:
            with pytest.raises(CycleInProgressError):
                orchestrator.check_session("s1")


class TestCheckPending:
    def test_checks_each_pending_session(
        self, orchestrator, store, marketplace, make_draft
    ):
        first = store.add_session("s1", SessionStatus.PENDING)
        store.add_session("s2", SessionStatus.PENDING)
        store.add_session("s3", SessionStatus.ACTIVE)

        def fetch_orders(credential):
            if credential == first.credential:
                return [make_draft("1001")]
            raise CredentialExpired("expired")

        marketplace.fetch_orders.side_effect = fetch_orders

        results = {r.session_id: r for r in orchestrator.check_pending()}

        assert set(results) == {"s1", "s2"}
        assert results["s1"].status == SessionStatus.ACTIVE
        assert results["s2"].expired is True

    def test_rejected_while_cycle_runs(self, orchestrator, store):
        with orchestrator._lock:
            with pytest.raises(CycleInProgressError):
                orchestrator.check_pending()
