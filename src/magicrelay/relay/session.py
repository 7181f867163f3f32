"""Paired session — duplex relay between exactly two roles.

Learn: A session has two slots, producer and consumer, each either empty
or holding one connection handle. The state machine per slot:

    Empty ──connect──▶ Connected(handle) ──disconnect──▶ Empty
                         │  ▲
                         └──┘ connect (last connect wins)

A write that fails counts as a disconnect: the handle is closed and its
slot emptied, so a stalled phone never sits in the slot losing traffic.

Every message from one side is forwarded verbatim to the other. A message
whose type is the session's terminal marker also goes to the notification
sink in a background task; whatever the sink does, neither party hears of it.

The session is never torn down. It outlives any number of
connect/disconnect cycles for the lifetime of the process.
"""

import asyncio
import enum
import json
from typing import Any, Optional, Protocol

import structlog

from magicrelay.events.types import PEER_DISCONNECTED, PEER_READY, READY
from magicrelay.relay.errors import MalformedMessageError
from magicrelay.relay.subscribers import Subscriber

logger = structlog.get_logger()


class NotificationSink(Protocol):
    async def deliver(self, artifact: str) -> None: ...


class Role(str, enum.Enum):
    PRODUCER = "producer"
    CONSUMER = "consumer"

    @property
    def opposite(self) -> "Role":
        return Role.CONSUMER if self is Role.PRODUCER else Role.PRODUCER


def parse_message(raw: str) -> dict[str, Any]:
    """Decode a session payload. Raises MalformedMessageError."""
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedMessageError(f"Payload is not JSON: {e}") from e
    if not isinstance(msg, dict) or not isinstance(msg.get("type"), str):
        raise MalformedMessageError("Payload must be an object with a string 'type'")
    return msg


def _signal(signal_type: str, **fields) -> str:
    return json.dumps({"type": signal_type, **fields})


class PairedSession:
    """Two role slots relaying to each other, keyed by session name."""

    def __init__(
        self,
        name: str,
        *,
        producer_role: str = "spectateur",
        consumer_role: str = "magicien",
        terminal_type: str = "final",
        artifact_field: str = "imageData",
        sink: Optional[NotificationSink] = None,
    ):
        self.name = name
        self.role_names = {Role.PRODUCER: producer_role, Role.CONSUMER: consumer_role}
        self.terminal_type = terminal_type
        self.artifact_field = artifact_field
        self.sink = sink
        self._slots: dict[Role, Optional[Subscriber]] = {
            Role.PRODUCER: None,
            Role.CONSUMER: None,
        }
        self._notifications: set[asyncio.Task] = set()
        self.relayed = 0

    # ─── Role lookup ─────────────────────────────────────────

    def resolve_role(self, role_name: Optional[str]) -> Optional[Role]:
        """Map a role name from the connection URL to a slot."""
        for role, name in self.role_names.items():
            if role_name == name:
                return role
        return None

    def handle_for(self, role: Role) -> Optional[Subscriber]:
        return self._slots[role]

    # ─── Transitions ─────────────────────────────────────────

    def connect(self, role: Role, handle: Subscriber) -> None:
        previous = self._slots[role]
        self._slots[role] = handle

        if previous is not None and previous is not handle:
            logger.info("session.superseded", session=self.name, role=self.role_names[role])
            try:
                previous.close()
            except Exception as e:
                logger.info("session.close_failed", session=self.name, error=repr(e))

        logger.info("session.connected", session=self.name, role=self.role_names[role])
        self._send(role, _signal(READY, role=self.role_names[role]))

        peer = role.opposite
        if self._slots[role] is handle and self._slots[peer] is not None:
            if self._send(peer, _signal(PEER_READY, peer=self.role_names[role])):
                self._send(role, _signal(PEER_READY, peer=self.role_names[peer]))

    def message(self, role: Role, handle: Subscriber, raw: str) -> bool:
        """Relay one payload from `role`. Returns True if it was forwarded."""
        if self._slots[role] is not handle:
            logger.info("session.stale_message", session=self.name, role=self.role_names[role])
            return False

        try:
            msg = parse_message(raw)
        except MalformedMessageError as e:
            logger.warning(
                "session.malformed_message",
                session=self.name,
                role=self.role_names[role],
                error=str(e),
            )
            return False

        forwarded = self._send(role.opposite, raw)
        if forwarded:
            self.relayed += 1

        if msg["type"] == self.terminal_type:
            self._notify(msg.get(self.artifact_field))
        return forwarded

    def disconnect(self, role: Role, handle: Subscriber) -> bool:
        """Empty the slot if `handle` still owns it."""
        if self._slots[role] is not handle:
            return False
        self._slots[role] = None
        logger.info("session.disconnected", session=self.name, role=self.role_names[role])
        self._send(role.opposite, _signal(PEER_DISCONNECTED, peer=self.role_names[role]))
        return True

    def snapshot(self) -> dict[str, bool]:
        return {self.role_names[role]: handle is not None for role, handle in self._slots.items()}

    # ─── Internals ───────────────────────────────────────────

    def _send(self, role: Role, text: str) -> bool:
        handle = self._slots[role]
        if handle is None:
            return False
        try:
            handle.send(text)
        except Exception as e:
            logger.info(
                "session.write_failed",
                session=self.name,
                role=self.role_names[role],
                error=repr(e),
            )
            # A handle that cannot take writes is gone: empty its slot
            # and tell the peer, as if the connection had dropped
            try:
                handle.close()
            except Exception as close_error:
                logger.info("session.close_failed", session=self.name, error=repr(close_error))
            self.disconnect(role, handle)
            return False
        return True

    def _notify(self, artifact: Any) -> None:
        if self.sink is None:
            return
        if not isinstance(artifact, str) or not artifact:
            logger.warning(
                "session.terminal_without_artifact",
                session=self.name,
                field=self.artifact_field,
            )
            return
        task = asyncio.create_task(self._deliver(artifact))
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def _deliver(self, artifact: str) -> None:
        try:
            await self.sink.deliver(artifact)
        except Exception as e:
            logger.warning("session.notification_failed", session=self.name, error=str(e))
        else:
            logger.info("session.notification_sent", session=self.name)

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)."""
        if self._notifications:
            await asyncio.gather(*self._notifications, return_exceptions=True)
