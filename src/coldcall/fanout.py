"""Subscriber fan-out for call state changes.

The registry owns one FanOut and calls notify() after every mutation.
Subscribers are plain callables taking (event, call). A subscriber that
raises is dropped on the spot so it can never hold up the registry or the
remaining subscribers.

The push channel wraps each open SSE connection in an SSESubscriber whose
callback only enqueues a serialized frame; the connection's own task drains
the queue, so a slow client costs a bounded queue, not ingestion latency.
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

HEARTBEAT = ": heartbeat\n\n"
DEFAULT_HEARTBEAT_SECONDS = 30.0
DEFAULT_QUEUE_SIZE = 256


def format_sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


class FanOut:
    def __init__(self):
        self._subscribers: list = []

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            self._discard(callback)

        return unsubscribe

    def _discard(self, callback: Callable) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    def notify(self, event: str, call) -> int:
        """Deliver one notification to every current subscriber. Returns the delivered count."""
        delivered = 0
        for callback in list(self._subscribers):
            try:
                callback(event, call)
                delivered += 1
            except Exception as e:
                logger.warning("Dropping subscriber %r after %s: %s", callback, type(e).__name__, e)
                self._discard(callback)
        return delivered


class SSESubscriber:
    """Queue-backed subscriber for one push-channel connection."""

    def __init__(self, max_queue: int = DEFAULT_QUEUE_SIZE):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.closed = False

    def __call__(self, event: str, call) -> None:
        if self.closed:
            raise ConnectionError("subscriber closed")
        frame = format_sse({"type": event, "call": call.to_dict()})
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            self.closed = True
            raise

    def close(self) -> None:
        self.closed = True


async def event_stream(
    registry,
    heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    max_queue: int = DEFAULT_QUEUE_SIZE,
):
    """Yield SSE frames: an init snapshot, then incremental updates and heartbeats."""
    subscriber = SSESubscriber(max_queue=max_queue)
    unsubscribe = registry.subscribe(subscriber)
    logger.info("Stream subscriber connected (%d open)", registry.subscriber_count)
    try:
        # Snapshot and subscribe happen with no await in between, so no update is missed.
        yield format_sse({"type": "init", "calls": [c.to_dict() for c in registry.get_all()]})
        while True:
            if subscriber.closed and subscriber.queue.empty():
                break
            try:
                frame = await asyncio.wait_for(subscriber.queue.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                if is_disconnected is not None and await is_disconnected():
                    break
                yield HEARTBEAT
                continue
            yield frame
    finally:
        subscriber.close()
        unsubscribe()
        logger.info("Stream subscriber disconnected (%d open)", registry.subscriber_count)
