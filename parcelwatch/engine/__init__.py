"""
Reconciliation engine.

``get_orchestrator()`` returns the process-wide orchestrator wired with the
default marketplace client, carrier clients and webhook notifier.
"""

from functools import lru_cache

from parcelwatch.carriers import default_carrier_clients
from parcelwatch.engine.events import AsyncSubscription, EventBus, Subscription
from parcelwatch.engine.orchestrator import ReconciliationOrchestrator
from parcelwatch.engine.reconciler import OrderReconciler
from parcelwatch.engine.sessions import SessionLifecycleManager
from parcelwatch.marketplace.client import MarketplaceClient
from parcelwatch.notifications.webhook import WebhookNotifier


def build_orchestrator(
    marketplace: MarketplaceClient | None = None,
    carrier_clients: dict | None = None,
    notifier: WebhookNotifier | None = None,
    events: EventBus | None = None,
) -> ReconciliationOrchestrator:
    """Wire an orchestrator, defaulting every collaborator."""
    events = events or EventBus()
    notifier = notifier or WebhookNotifier()
    sessions = SessionLifecycleManager(events)
    reconciler = OrderReconciler(
        sessions=sessions,
        carrier_clients=(
            carrier_clients if carrier_clients is not None else default_carrier_clients()
        ),
        notifier=notifier,
        events=events,
    )
    return ReconciliationOrchestrator(
        marketplace=marketplace or MarketplaceClient(),
        sessions=sessions,
        reconciler=reconciler,
        notifier=notifier,
        events=events,
    )


@lru_cache(maxsize=1)
def get_orchestrator() -> ReconciliationOrchestrator:
    """Process-wide orchestrator."""
    return build_orchestrator()


__all__ = [
    "AsyncSubscription",
    "EventBus",
    "OrderReconciler",
    "ReconciliationOrchestrator",
    "SessionLifecycleManager",
    "Subscription",
    "build_orchestrator",
    "get_orchestrator",
]
