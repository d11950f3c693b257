"""
In-process event bus.

Engine components publish EngineEvents; HTTP clients (server-sent events)
subscribe through an asyncio-side queue. Each subscriber gets its own
bounded queue so a slow consumer only ever loses its own oldest events and
never blocks the engine.
"""

import asyncio
import logging
import queue
import threading
from typing import Any, Iterator

from parcelwatch.models.event import EngineEvent, EventType

logger = logging.getLogger(__name__)

DEFAULT_SUBSCRIPTION_SIZE = 100


class Subscription:
    """
    A subscriber's queue on the bus.

    Usage:
        with bus.subscribe() as subscription:
            for event in subscription.iter(timeout=15):
                ...
    """

    def __init__(self, bus: "EventBus", maxsize: int):
        self._bus = bus
        self._queue: queue.Queue[EngineEvent] = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def _offer(self, event: EngineEvent):
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def get(self, timeout: float | None = None) -> EngineEvent | None:
        """Next event, or None when nothing arrives within ``timeout``."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def iter(self, timeout: float) -> Iterator[EngineEvent | None]:
        """Yield events forever; yields None after each idle ``timeout``."""
        while True:
            yield self.get(timeout=timeout)

    def close(self):
        self._bus.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class AsyncSubscription:
    """
    A subscriber's queue consumed from an asyncio event loop.

    Publishers on any thread hand events to the loop with
    ``call_soon_threadsafe``, so waiting for an event never occupies an
    executor thread.
    """

    def __init__(
        self,
        bus: "EventBus",
        maxsize: int,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self._bus = bus
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue[EngineEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def _offer(self, event: EngineEvent):
        try:
            self._loop.call_soon_threadsafe(self._put, event)
        except RuntimeError:
            # Loop closed without unsubscribing
            self.close()

    def _put(self, event: EngineEvent):
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    async def get(self, timeout: float | None = None) -> EngineEvent | None:
        """Next event, or None when nothing arrives within ``timeout``."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def close(self):
        self._bus.unsubscribe(self)

    def __enter__(self) -> "AsyncSubscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class EventBus:
    """Thread-safe publish/subscribe hub."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription | AsyncSubscription] = []

    def subscribe(self, maxsize: int = DEFAULT_SUBSCRIPTION_SIZE) -> Subscription:
        subscription = Subscription(self, maxsize)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def subscribe_async(
        self, maxsize: int = DEFAULT_SUBSCRIPTION_SIZE
    ) -> AsyncSubscription:
        """Subscribe from inside a running event loop."""
        subscription = AsyncSubscription(self, maxsize)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription | AsyncSubscription):
        """Remove a subscription. Unknown subscriptions are ignored."""
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, event: EngineEvent):
        """Deliver an event to every current subscriber without blocking."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription._offer(event)
        logger.debug("Published %s to %d subscribers", event.type, len(subscriptions))

    def emit(self, event_type: EventType, **data: Any):
        """Shorthand for ``publish(EngineEvent(type=..., data=...))``."""
        self.publish(EngineEvent(type=event_type, data=data))
