"""Relay engine — channels, sessions, and the registry that owns them.

Learn: Everything in this package is synchronous and in-memory. Two shapes
of relay live here:
1. BroadcastChannel — producer → cache → every subscriber (one-way)
2. PairedSession — producer role ⇄ consumer role (duplex)

Transports (SSE, WebSocket) live in magicrelay.realtime and only ever hand
the engine opaque handles with send() and close().
"""

from magicrelay.relay.cache import Event, EventCache
from magicrelay.relay.channel import BroadcastChannel
from magicrelay.relay.errors import (
    InvalidSymbolError,
    MalformedMessageError,
    RelayError,
    SubscriberWriteError,
    UnknownChannelError,
    UnknownSessionError,
)
from magicrelay.relay.heartbeat import HeartbeatTimer
from magicrelay.relay.registry import Registry, build_registry
from magicrelay.relay.session import PairedSession, Role
from magicrelay.relay.subscribers import SubscriberSet

__all__ = [
    "BroadcastChannel",
    "Event",
    "EventCache",
    "HeartbeatTimer",
    "InvalidSymbolError",
    "MalformedMessageError",
    "PairedSession",
    "Registry",
    "RelayError",
    "Role",
    "SubscriberSet",
    "SubscriberWriteError",
    "UnknownChannelError",
    "UnknownSessionError",
    "build_registry",
]
