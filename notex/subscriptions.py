"""Server side of the ``/notes/events`` change stream."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from notex.broadcast import SSE_SEPARATOR, BroadcastRegistry, Subscriber

logger = logging.getLogger(__name__)

# sse-starlette already sets Connection and X-Accel-Buffering
STREAM_HEADERS = {"Cache-Control": "no-cache"}


def connected_event() -> ServerSentEvent:
    return ServerSentEvent(comment="connected", sep=SSE_SEPARATOR)


def keepalive_event() -> ServerSentEvent:
    return ServerSentEvent(comment="keep-alive", sep=SSE_SEPARATOR)


async def subscription_stream(registry: BroadcastRegistry, subscriber: Subscriber) -> AsyncIterator[ServerSentEvent]:
    """Yield change frames for one subscriber until its handle is closed.

    The acknowledgement comment goes out before the subscriber is
    registered. The subscriber is unregistered on the way out, whether the
    stream was cancelled by a client disconnect or finished on its own.
    """
    yield connected_event()
    registry.register(subscriber)
    subscriber.mark_read()
    try:
        while True:
            frame = await subscriber.queue.get()
            if frame is None:
                logger.info("Subscriber closed by registry", extra={"subscriber_id": subscriber.subscriber_id})
                break
            subscriber.mark_read()
            yield frame
    finally:
        registry.unregister(subscriber)


def event_stream_response(
    registry: BroadcastRegistry,
    subscriber: Subscriber,
    keepalive_interval: float = 25.0,
) -> EventSourceResponse:
    """Serve *subscriber* as ``text/event-stream``.

    Keep-alive comments come from sse-starlette's ping task, which runs on
    its own timer, so event traffic never pushes them back.
    """
    return EventSourceResponse(
        subscription_stream(registry, subscriber),
        headers=STREAM_HEADERS,
        ping=keepalive_interval,
        ping_message_factory=keepalive_event,
        sep=SSE_SEPARATOR,
    )


async def sweep_idle_subscribers(registry: BroadcastRegistry, interval: float) -> None:
    """Periodically evict subscribers whose readers have stalled."""
    while True:
        await asyncio.sleep(interval)
        evicted = registry.evict_idle()
        if evicted:
            logger.info("Idle sweep evicted %s subscriber(s)", evicted)


__all__ = [
    "subscription_stream",
    "event_stream_response",
    "sweep_idle_subscribers",
    "connected_event",
    "keepalive_event",
    "STREAM_HEADERS",
]
