"""Pydantic schemas for channel ingress, polling, and status.

Learn: magnitude is lenient: triggers send whatever their
shortcut app produces, and anything that is not a finite number becomes 0
instead of a 422.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from magicrelay.relay.channel import coerce_magnitude


# ─── Ingress ──────────────────────────────────────────────


class EventPublish(BaseModel):
    kind: Optional[str] = None
    magnitude: float = 0.0
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("kind", mode="before")
    @classmethod
    def kind_text(cls, v):
        return v if v is None or isinstance(v, str) else str(v)

    @field_validator("magnitude", mode="before")
    @classmethod
    def lenient_magnitude(cls, v):
        return coerce_magnitude(v)

    @field_validator("extra", mode="before")
    @classmethod
    def extra_object(cls, v):
        return v if isinstance(v, dict) else {}


# ─── Egress ───────────────────────────────────────────────


class EventRead(BaseModel):
    channel: str
    kind: str
    magnitude: float
    received_at: datetime
    extra: dict[str, Any]


class LatestRead(BaseModel):
    fresh: bool
    event: Optional[EventRead] = None


class ChannelRead(BaseModel):
    name: str
    kinds: list[str]
    ttl_seconds: float
    silent_catch_up: bool
    subscribers: int


# ─── Status ───────────────────────────────────────────────


class ChannelStatus(BaseModel):
    name: str
    subscribers: int
    published: int
    fresh: bool


class SessionStatus(BaseModel):
    name: str
    roles: dict[str, bool]
    relayed: int


class StatusRead(BaseModel):
    status: str = "ok"
    version: str
    uptime_seconds: float
    channels: list[ChannelStatus]
    sessions: list[SessionStatus]
