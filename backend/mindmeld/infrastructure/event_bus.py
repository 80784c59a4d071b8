"""Event Bus: in-process, per-topic publish/subscribe for room and round snapshots.

Invariants:
    - Topics are strings: "room:<uuid>" or "round:<uuid>" (core.domain_types.topic_key)
    - publish() never blocks and never raises because of a slow subscriber
    - Each subscriber has its own bounded queue; on overflow the OLDEST event is
      dropped (events are full snapshots, the newest supersedes)
    - stream() yields the initial snapshot BEFORE any queued event; the
      subscription is registered first so nothing published in between is lost
    - close_topic() ends every stream on that topic after a final event

Design Decisions:
    - Owned by GameContext (process lifetime) and injected into services, not a
      module-level emitter: each test builds its own bus
    - asyncio.Queue per subscriber: delivery order per subscriber == publish order
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """One observer's queue on one topic. Async-iterable until closed."""

    def __init__(self, bus: "EventBus", topic: str, maxsize: int):
        self.bus = bus
        self.topic = topic
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def deliver(self, event) -> None:
        if self.closed:
            return
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.queue.get_nowait()
            self.dropped += 1
            self.queue.put_nowait(event)

    def close(self) -> None:
        if self.closed:
            return
        self.bus._unsubscribe(self)
        self.deliver(_CLOSED)
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict:
        event = await self.queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        return event


class EventBus:
    """Topic -> subscribers registry. Single event loop, no locks needed."""

    def __init__(self, queue_size: int = 64):
        self.queue_size = queue_size
        self._subscribers: dict[str, set[Subscription]] = defaultdict(set)

    def subscribe(self, topic: str) -> Subscription:
        sub = Subscription(self, topic, self.queue_size)
        self._subscribers[topic].add(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.topic)
        if subs is None:
            return
        subs.discard(sub)
        if not subs:
            del self._subscribers[sub.topic]

    def publish(self, topic: str, payload: dict) -> int:
        """Deliver to every current subscriber of `topic`. Returns delivery count."""
        subs = list(self._subscribers.get(topic, ()))
        for sub in subs:
            sub.deliver(payload)
        return len(subs)

    def close_topic(self, topic: str, final_event: dict | None = None) -> None:
        for sub in list(self._subscribers.get(topic, ())):
            if final_event is not None:
                sub.deliver(final_event)
            sub.close()

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    async def stream(
        self, sub: Subscription, initial: dict | None = None,
    ) -> AsyncIterator[dict]:
        """Yield `initial` then every event on the subscription until closed."""
        try:
            if initial is not None:
                yield initial
            async for event in sub:
                yield event
        finally:
            sub.close()
            if sub.dropped:
                logger.info(
                    "Subscriber on %s dropped %d stale snapshot(s)",
                    sub.topic, sub.dropped,
                )
