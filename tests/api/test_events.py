"""
Tests for the server-sent event stream.
"""

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from parcelwatch.api.routes.events import _stream_events
from parcelwatch.engine.events import EventBus
from parcelwatch.models.event import EventType


class FakeRequest:
    """Request that disconnects after a number of polls."""

    def __init__(self, polls: int):
        self._polls = polls

    async def is_disconnected(self) -> bool:
        self._polls -= 1
        return self._polls < 0


async def _collect(request, subscription) -> list[str]:
    return [chunk async for chunk in _stream_events(request, subscription)]


class TestStreamEvents:
    @pytest.mark.asyncio
    async def test_relays_events(self):
        bus = EventBus()
        subscription = bus.subscribe_async()
        bus.emit(EventType.ORDER_NEW, order_id="224004746255220")

        chunks = await _collect(FakeRequest(polls=1), subscription)

        assert chunks[0] == ": connected\n\n"
        header, data = chunks[1].strip().split("\n")
        assert header == "event: order_new"
        assert json.loads(data.removeprefix("data: "))["data"] == {
            "order_id": "224004746255220"
        }

    @pytest.mark.asyncio
    async def test_idle_stream_sends_keepalive(self):
        bus = EventBus()

        with patch("parcelwatch.api.routes.events.KEEPALIVE_SECONDS", 0.01):
            chunks = await _collect(FakeRequest(polls=1), bus.subscribe_async())

        assert chunks == [": connected\n\n", ": ping\n\n"]

    @pytest.mark.asyncio
    async def test_disconnect_unsubscribes(self):
        bus = EventBus()

        await _collect(FakeRequest(polls=0), bus.subscribe_async())

        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_relays_events_published_from_worker_threads(self):
        bus = EventBus()
        subscription = bus.subscribe_async()
        await asyncio.to_thread(bus.emit, EventType.CYCLE_COMPLETED, new=1)

        chunks = await _collect(FakeRequest(polls=1), subscription)

        assert chunks[1].startswith("event: cycle_completed\n")

    @pytest.mark.asyncio
    async def test_idle_streams_leave_worker_threads_free(self):
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1)
        loop.set_default_executor(executor)
        bus = EventBus()

        with patch("parcelwatch.api.routes.events.KEEPALIVE_SECONDS", 5):
            streams = [
                asyncio.create_task(
                    _collect(FakeRequest(polls=1), bus.subscribe_async())
                )
                for _ in range(3)
            ]
            await asyncio.sleep(0.05)

            result = await asyncio.wait_for(asyncio.to_thread(lambda: "cycle"), 1)

            bus.emit(EventType.CYCLE_COMPLETED)
            outputs = await asyncio.wait_for(asyncio.gather(*streams), 1)

        assert result == "cycle"
        assert all(len(chunks) == 2 for chunks in outputs)
        assert bus.subscriber_count == 0
