"""Registry — every channel and session, built once at startup.

Learn: The set of identifiers is static configuration. Nothing is created
on demand, so a typo in a URL is a 404 at the routing layer rather than a
brand new empty channel.
"""

import time
from typing import Iterable, Optional

from magicrelay.config import ChannelSettings, SessionSettings, Settings
from magicrelay.relay.cache import Clock
from magicrelay.relay.channel import BroadcastChannel
from magicrelay.relay.errors import UnknownChannelError, UnknownSessionError
from magicrelay.relay.session import NotificationSink, PairedSession


class Registry:
    def __init__(
        self,
        channels: Iterable[BroadcastChannel] = (),
        sessions: Iterable[PairedSession] = (),
        *,
        clock: Clock = time.monotonic,
    ):
        self._channels = {c.name: c for c in channels}
        self._sessions = {s.name: s for s in sessions}
        self._clock = clock
        self.started_at = clock()

    def channel(self, name: str) -> BroadcastChannel:
        try:
            return self._channels[name]
        except KeyError:
            raise UnknownChannelError(f"Channel {name!r} not found") from None

    def session(self, name: str) -> PairedSession:
        try:
            return self._sessions[name]
        except KeyError:
            raise UnknownSessionError(f"Session {name!r} not found") from None

    def channels(self) -> list[BroadcastChannel]:
        return list(self._channels.values())

    def sessions(self) -> list[PairedSession]:
        return list(self._sessions.values())

    def uptime(self) -> float:
        return self._clock() - self.started_at

    def status(self) -> dict:
        """Liveness summary: uptime, channels, sessions."""
        return {
            "uptime_seconds": round(self.uptime(), 3),
            "channels": [
                {
                    "name": c.name,
                    "subscribers": c.subscriber_count,
                    "published": c.published,
                    "fresh": c.peek_latest() is not None,
                }
                for c in self._channels.values()
            ],
            "sessions": [
                {"name": s.name, "roles": s.snapshot(), "relayed": s.relayed}
                for s in self._sessions.values()
            ],
        }


def channel_from_settings(config: ChannelSettings, clock: Clock = time.monotonic) -> BroadcastChannel:
    return BroadcastChannel(
        config.name,
        config.kinds,
        ttl_seconds=config.ttl_seconds,
        silent_catch_up=config.silent_catch_up,
        clock=clock,
    )


def session_from_settings(
    config: SessionSettings, sink: Optional[NotificationSink] = None
) -> PairedSession:
    return PairedSession(
        config.name,
        producer_role=config.producer_role,
        consumer_role=config.consumer_role,
        terminal_type=config.terminal_type,
        artifact_field=config.artifact_field,
        sink=sink,
    )


def build_registry(
    settings: Settings,
    *,
    sink: Optional[NotificationSink] = None,
    clock: Clock = time.monotonic,
) -> Registry:
    """Instantiate every configured channel and session."""
    return Registry(
        (channel_from_settings(c, clock) for c in settings.channels),
        (session_from_settings(s, sink) for s in settings.sessions),
        clock=clock,
    )
