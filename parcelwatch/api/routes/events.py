"""
Server-sent event stream of engine events.
"""

from typing import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from parcelwatch.engine import get_orchestrator
from parcelwatch.engine.events import AsyncSubscription

router = APIRouter()

# Seconds between keep-alive comments on an idle stream
KEEPALIVE_SECONDS = 15


async def _stream_events(
    request: Request, subscription: AsyncSubscription
) -> AsyncIterator[str]:
    """Relay events until the client disconnects."""
    try:
        yield ": connected\n\n"
        while not await request.is_disconnected():
            event = await subscription.get(KEEPALIVE_SECONDS)
            if event is None:
                yield ": ping\n\n"
                continue
            yield f"event: {event.type.value}\ndata: {event.model_dump_json()}\n\n"
    finally:
        subscription.close()


@router.get("/events")
async def stream_events(request: Request):
    """Stream engine events (order and session changes, cycle results)."""
    subscription = get_orchestrator().events.subscribe_async()
    return StreamingResponse(
        _stream_events(request, subscription),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
