"""In-memory broadcast of note change events to live subscribers."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sse_starlette.sse import ServerSentEvent

from notex.errors import DeliveryError
from notex.metrics import (
    record_deliveries,
    record_event_published,
    record_eviction,
    set_active_subscribers,
)
from notex.models import EVENT_NAME, ChangeEvent
from notex.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# frames end with a bare "\n\n" rather than sse-starlette's default "\r\n"
SSE_SEPARATOR = "\n"


def encode_event(event: ChangeEvent) -> ServerSentEvent:
    """Render *event* as one SSE frame, shared by every subscriber."""
    return ServerSentEvent(event=EVENT_NAME, data=event.model_dump_json(), sep=SSE_SEPARATOR)


@dataclass(eq=False)
class Subscriber:
    """One open change stream.

    ``queue`` carries encoded frames; a ``None`` entry tells the stream to
    finish. ``waiting_since`` is set while at least one frame sits unread and
    reset each time the reader takes one, so only a reader that leaves
    frames behind can go stale. A reader blocked on an empty queue is
    healthy no matter how quiet the stream is.
    """

    subscriber_id: str
    queue: asyncio.Queue[ServerSentEvent | None]
    connected_at: datetime = field(default_factory=utc_now)
    last_read: float = field(default_factory=time.monotonic)
    waiting_since: float | None = None
    closed: bool = False

    def deliver(self, frame: ServerSentEvent) -> None:
        if self.closed:
            raise DeliveryError(self.subscriber_id, "closed")
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull as exc:
            raise DeliveryError(self.subscriber_id, "queue full") from exc
        if self.waiting_since is None:
            self.waiting_since = time.monotonic()

    def mark_read(self) -> None:
        self.last_read = time.monotonic()
        self.waiting_since = self.last_read if not self.queue.empty() else None

    def close(self) -> None:
        """Discard pending frames and wake the stream so it ends."""
        if self.closed:
            return
        self.closed = True
        self.waiting_since = None
        while True:
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        self.queue.put_nowait(None)


class BroadcastRegistry:
    """Process-wide set of subscribers and the publish fan-out over them.

    Delivery is best-effort and at-most-once: nothing is buffered for
    subscribers that are not registered at publish time. Each subscriber sees
    events in publish order. ``publish`` never blocks; a subscriber whose
    queue is full is dropped instead of slowing the others down.
    """

    def __init__(self, queue_maxsize: int = 100, idle_timeout: float | None = None) -> None:
        self.queue_maxsize = queue_maxsize
        self.idle_timeout = idle_timeout or None
        self._subscribers: set[Subscriber] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber: object) -> bool:
        return subscriber in self._subscribers

    def open_subscriber(self, subscriber_id: str | None = None) -> Subscriber:
        """Create an unregistered handle sized for this registry."""
        return Subscriber(
            subscriber_id=subscriber_id or f"sub-{uuid.uuid4().hex[:8]}",
            queue=asyncio.Queue(maxsize=self.queue_maxsize),
        )

    def register(self, subscriber: Subscriber) -> None:
        self._subscribers.add(subscriber)
        set_active_subscribers(len(self._subscribers))
        logger.info(
            "Subscriber registered",
            extra={"subscriber_id": subscriber.subscriber_id, "subscribers": len(self._subscribers)},
        )

    def unregister(self, subscriber: Subscriber) -> None:
        if subscriber not in self._subscribers:
            return
        self._subscribers.discard(subscriber)
        set_active_subscribers(len(self._subscribers))
        logger.info(
            "Subscriber unregistered",
            extra={"subscriber_id": subscriber.subscriber_id, "subscribers": len(self._subscribers)},
        )

    def publish(self, event: ChangeEvent) -> int:
        """Send *event* to every current subscriber; returns deliveries made."""
        record_event_published(event.type)
        if not self._subscribers:
            return 0

        frame = encode_event(event)
        delivered = 0
        failed = 0
        for subscriber in list(self._subscribers):
            try:
                subscriber.deliver(frame)
            except DeliveryError as exc:
                failed += 1
                logger.warning(
                    "Dropping subscriber after failed delivery: %s",
                    exc.reason,
                    extra={"subscriber_id": exc.subscriber_id, "event_type": event.type},
                )
                self._evict(subscriber, "delivery_failed")
            else:
                delivered += 1
        record_deliveries(delivered, failed)
        return delivered

    def evict_idle(self, now: float | None = None) -> int:
        """Remove subscribers that left a frame unread for longer than ``idle_timeout``."""
        if self.idle_timeout is None:
            return 0
        now = time.monotonic() if now is None else now
        stale = [
            sub
            for sub in list(self._subscribers)
            if sub.waiting_since is not None and now - sub.waiting_since > self.idle_timeout
        ]
        for subscriber in stale:
            logger.warning(
                "Evicting stalled subscriber",
                extra={
                    "subscriber_id": subscriber.subscriber_id,
                    "unread_frames": subscriber.queue.qsize(),
                    "stalled_seconds": round(now - subscriber.waiting_since, 1),
                },
            )
            self._evict(subscriber, "idle")
        return len(stale)

    def close_all(self) -> None:
        for subscriber in list(self._subscribers):
            self.unregister(subscriber)
            subscriber.close()

    def _evict(self, subscriber: Subscriber, reason: str) -> None:
        self.unregister(subscriber)
        subscriber.close()
        record_eviction(reason)


__all__ = ["BroadcastRegistry", "Subscriber", "encode_event", "SSE_SEPARATOR"]
