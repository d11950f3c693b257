"""
Engine fixtures: a real in-memory store with mocked upstreams.
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from parcelwatch.carriers.ghn import GHNClient
from parcelwatch.carriers.spx import SPXClient
from parcelwatch.db.unit_of_work import UnitOfWork
from parcelwatch.engine import build_orchestrator
from parcelwatch.engine.events import EventBus
from parcelwatch.marketplace.client import MarketplaceClient
from parcelwatch.models.carrier import CarrierStatus
from parcelwatch.models.order import (
    Carrier,
    OrderDraft,
    OrderRecord,
    TrackingEvent,
    TrackingJourney,
    TrackingMethod,
)
from parcelwatch.models.session import MarketplaceSession, SessionStatus
from parcelwatch.notifications.webhook import WebhookNotifier

SPX_CODE = "SPXVN068797458621"
ORDER_ID = "224004746255220"


class Store:
    """Seeding and inspection helpers over the test database."""

    def add_session(
        self, session_id: str = "s1", status: SessionStatus = SessionStatus.ACTIVE
    ) -> MarketplaceSession:
        with UnitOfWork() as uow:
            session = uow.sessions.create(
                MarketplaceSession(
                    id=session_id,
                    credential=f"SPC_ST=credential-{session_id}",
                    status=status,
                    created_at=datetime.now(timezone.utc),
                )
            )
            uow.commit()
        return session

    def add_order(
        self,
        order_id: str = ORDER_ID,
        session_id: str | None = "s1",
        tracking_number: str | None = None,
        method: TrackingMethod = TrackingMethod.AWAITING_CODE,
        status: str = "Đang vận chuyển",
    ) -> OrderRecord:
        with UnitOfWork() as uow:
            order = uow.orders.create(
                OrderRecord(
                    id=order_id,
                    session_id=session_id,
                    product="Bình giữ nhiệt - Màu đỏ",
                    tracking_number=tracking_number,
                    carrier=Carrier.SPX if method == TrackingMethod.SPX else None,
                    tracking_method=method,
                    status=status,
                )
            )
            uow.commit()
        return order

    def add_journey(self, code: str = SPX_CODE, events: int = 1):
        with UnitOfWork() as uow:
            uow.journeys.save_if_richer(
                TrackingJourney(
                    tracking_number=code,
                    carrier=Carrier.SPX,
                    events=[TrackingEvent(status=f"step {i}") for i in range(events)],
                )
            )
            uow.commit()

    def order(self, order_id: str = ORDER_ID) -> OrderRecord | None:
        with UnitOfWork() as uow:
            return uow.orders.get_by_id(order_id)

    def orders(self) -> list[OrderRecord]:
        with UnitOfWork() as uow:
            return uow.orders.list_all()

    def session(self, session_id: str = "s1") -> MarketplaceSession | None:
        with UnitOfWork() as uow:
            return uow.sessions.get_by_id(session_id)

    def journey(self, code: str = SPX_CODE) -> TrackingJourney | None:
        with UnitOfWork() as uow:
            return uow.journeys.get(code)

    def delivered_count(self) -> int:
        with UnitOfWork() as uow:
            return uow.delivered.count()

    def is_delivered(self, order_id: str = ORDER_ID) -> bool:
        with UnitOfWork() as uow:
            return uow.delivered.exists_for_order(order_id)


@pytest.fixture
def store(database) -> Store:
    return Store()


@pytest.fixture
def make_draft():
    def _make(order_id: str = ORDER_ID, **fields) -> OrderDraft:
        values = {
            "order_id": order_id,
            "ordinal": 1,
            "status": "Đang vận chuyển",
            "product": "Bình giữ nhiệt - Màu đỏ",
        }
        values.update(fields)
        return OrderDraft(**values)

    return _make


@pytest.fixture
def make_status():
    def _make(
        code: str = SPX_CODE,
        carrier: Carrier = Carrier.SPX,
        delivered: bool = False,
        status_text: str = "Đang trung chuyển",
        events: int = 1,
        **fields,
    ) -> CarrierStatus:
        return CarrierStatus(
            carrier=carrier,
            tracking_number=code,
            delivered=delivered,
            status_text=status_text,
            history=[
                TrackingEvent(status=f"step {i}", description=status_text)
                for i in range(events)
            ],
            **fields,
        )

    return _make


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded(events):
    """Subscription capturing every engine event of a test."""
    with events.subscribe(maxsize=1000) as subscription:
        yield subscription


@pytest.fixture
def drain(recorded):
    """Collect the types of the events published so far."""

    def _drain() -> list[str]:
        types = []
        while (event := recorded.get(timeout=0)) is not None:
            types.append(event.type)
        return types

    return _drain


@pytest.fixture
def marketplace():
    client = Mock(spec=MarketplaceClient)
    client.fetch_batch.return_value = []
    client.fetch_orders.return_value = []
    return client


@pytest.fixture
def carriers():
    return {
        Carrier.SPX: Mock(spec=SPXClient),
        Carrier.GHN: Mock(spec=GHNClient),
    }


@pytest.fixture
def notifier():
    return Mock(spec=WebhookNotifier)


@pytest.fixture
def orchestrator(database, marketplace, carriers, notifier, events):
    return build_orchestrator(
        marketplace=marketplace,
        carrier_clients=carriers,
        notifier=notifier,
        events=events,
    )


@pytest.fixture
def reconciler(orchestrator):
    return orchestrator.reconciler


@pytest.fixture
def sessions(orchestrator):
    return orchestrator.sessions
