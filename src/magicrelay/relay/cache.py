"""Last-known event per channel, with TTL freshness.

Learn: There is no history and no eviction. Each accepted publish
overwrites the single slot; whether the cached event is still worth
serving is decided at read time by comparing its age against the TTL.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

Clock = Callable[[], float]


@dataclass(frozen=True)
class Event:
    """One accepted publish on a channel."""

    channel: str
    kind: str
    magnitude: float
    arrived_at: float  # clock reading, used only for TTL arithmetic
    received_at: datetime
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "kind": self.kind,
            "magnitude": self.magnitude,
            "received_at": self.received_at.isoformat(),
            "extra": dict(self.extra),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


class EventCache:
    """Single-slot cache judged against a fixed TTL."""

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._event: Optional[Event] = None

    def now(self) -> float:
        return self._clock()

    def store(self, event: Event) -> None:
        self._event = event

    def is_fresh(self, event: Event) -> bool:
        return self._clock() - event.arrived_at < self.ttl_seconds

    def fresh(self) -> Optional[Event]:
        """Return the cached event while it is younger than the TTL."""
        event = self._event
        if event is None or not self.is_fresh(event):
            return None
        return event

    @property
    def last(self) -> Optional[Event]:
        """Cached event regardless of age."""
        return self._event


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
