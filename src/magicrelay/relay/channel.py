"""Broadcast channel — validated publish, cached last event, fan-out.

Learn: publish() is the whole data path:
1. Validate the kind against the channel's fixed symbol set
2. Overwrite the EventCache
3. Write the serialized event to a snapshot of the subscribers,
   pruning and closing every handle whose write raises

Delivery is best-effort, exactly one attempt per subscriber. A dead
subscriber is discovered on the next write, never probed proactively.
"""

import itertools
import math
import time
from typing import Any, Iterable, Mapping, Optional

import structlog

from magicrelay.relay.cache import Clock, Event, EventCache, utcnow
from magicrelay.relay.errors import InvalidSymbolError
from magicrelay.relay.subscribers import Subscriber, SubscriberSet

logger = structlog.get_logger()


def coerce_magnitude(value: Any) -> float:
    """Numeric magnitude, or 0 for anything absent or unparseable."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        magnitude = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(magnitude):
        return 0.0
    return magnitude


class BroadcastChannel:
    """One-way relay for a fixed set of symbolic event kinds."""

    def __init__(
        self,
        name: str,
        kinds: Iterable[str],
        *,
        ttl_seconds: float = 60.0,
        silent_catch_up: bool = False,
        clock: Clock = time.monotonic,
    ):
        self.name = name
        self.kinds = frozenset(kinds)
        self.silent_catch_up = silent_catch_up
        self.cache = EventCache(ttl_seconds, clock=clock)
        self.subscribers = SubscriberSet()
        self._ids = itertools.count(1)
        self.published = 0

    @property
    def ttl_seconds(self) -> float:
        return self.cache.ttl_seconds

    @property
    def subscriber_count(self) -> int:
        return len(self.subscribers)

    def publish(
        self,
        kind: Optional[str],
        magnitude: Any = 0,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Event:
        """Accept an event and fan it out. Raises InvalidSymbolError."""
        if not kind or kind not in self.kinds:
            raise InvalidSymbolError(self.name, kind, sorted(self.kinds))

        event = Event(
            channel=self.name,
            kind=kind,
            magnitude=coerce_magnitude(magnitude),
            arrived_at=self.cache.now(),
            received_at=utcnow(),
            extra=extra or {},
        )
        self.cache.store(event)
        self.published += 1

        message = event.to_json()
        delivered = 0
        for handle in self.subscribers.snapshot():
            if self._deliver(handle, message):
                delivered += 1

        logger.info(
            "channel.published",
            channel=self.name,
            kind=kind,
            delivered=delivered,
            subscribers=len(self.subscribers),
        )
        return event

    def subscribe(self, handle: Subscriber) -> int:
        """Register a handle; push the cached event if fresh and not silent."""
        subscription_id = next(self._ids)
        self.subscribers.add(handle)

        catch_up = None if self.silent_catch_up else self.cache.fresh()
        if catch_up is not None:
            self._deliver(handle, catch_up.to_json())

        logger.info(
            "channel.subscribed",
            channel=self.name,
            subscription_id=subscription_id,
            caught_up=catch_up is not None and handle in self.subscribers,
            subscribers=len(self.subscribers),
        )
        return subscription_id

    def unsubscribe(self, handle: Subscriber) -> bool:
        removed = self.subscribers.discard(handle)
        if removed:
            logger.info(
                "channel.unsubscribed",
                channel=self.name,
                subscribers=len(self.subscribers),
            )
        return removed

    def peek_latest(self) -> Optional[Event]:
        return self.cache.fresh()

    def _deliver(self, handle: Subscriber, message: str) -> bool:
        try:
            handle.send(message)
        except Exception as e:
            self.subscribers.discard(handle)
            logger.info(
                "channel.subscriber_pruned",
                channel=self.name,
                error=repr(e),
                subscribers=len(self.subscribers),
            )
            # Closing ends the transport loop, which cancels its heartbeat
            try:
                handle.close()
            except Exception as close_error:
                logger.info("channel.close_failed", channel=self.name, error=repr(close_error))
            return False
        return True
