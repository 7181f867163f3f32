"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with MAGICRELAY_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: list fields (channels, sessions) are read as JSON from the
environment, e.g.
MAGICRELAY_CHANNELS='[{"name": "cards", "kinds": ["hearts", "spades"]}]'
"""

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

ZENER_SYMBOLS = ["circle", "cross", "waves", "square", "star"]


class ChannelSettings(BaseModel):
    """One broadcast channel: its symbol set and cache policy."""

    name: str
    kinds: list[str]
    ttl_seconds: float = Field(60.0, gt=0)
    # Withhold the cached event on connect; deliver only live publishes
    silent_catch_up: bool = False


class SessionSettings(BaseModel):
    """One paired session: role names and the terminal message contract."""

    name: str
    producer_role: str = "spectateur"
    consumer_role: str = "magicien"
    terminal_type: str = "final"
    artifact_field: str = "imageData"


def _default_channels() -> list[ChannelSettings]:
    return [
        ChannelSettings(name="zener", kinds=ZENER_SYMBOLS, ttl_seconds=60),
        ChannelSettings(name="oracle", kinds=ZENER_SYMBOLS, ttl_seconds=600),
        ChannelSettings(
            name="reveal", kinds=ZENER_SYMBOLS, ttl_seconds=60, silent_catch_up=True
        ),
    ]


def _default_sessions() -> list[SessionSettings]:
    return [SessionSettings(name="default"), SessionSettings(name="atelier")]


class Settings(BaseSettings):
    """All app configuration. Set via MAGICRELAY_* env vars."""

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # CORS
    cors_origins: list[str] = ["*"]

    # Relay
    heartbeat_interval: float = 25.0  # seconds between keep-alive frames
    subscriber_queue_size: int = 64
    channels: list[ChannelSettings] = Field(default_factory=_default_channels)
    sessions: list[SessionSettings] = Field(default_factory=_default_sessions)

    # Pushover (notification sink, disabled unless both are set)
    pushover_token: str = ""
    pushover_user: str = ""
    pushover_url: str = "https://api.pushover.net/1/messages.json"
    pushover_title: str = "Magic Draw"
    pushover_message: str = "New drawing from the spectator!"
    pushover_timeout: float = 15.0

    model_config = {"env_prefix": "MAGICRELAY_"}

    @property
    def pushover_enabled(self) -> bool:
        return bool(self.pushover_token and self.pushover_user)

    @model_validator(mode="after")
    def validate_relay_settings(self):
        """Reject duplicate identifiers and unusable channel/session definitions."""
        channel_names = [c.name for c in self.channels]
        if len(set(channel_names)) != len(channel_names):
            raise ValueError(f"Duplicate channel names in {channel_names}")
        for channel in self.channels:
            if not channel.kinds:
                raise ValueError(f"Channel {channel.name!r} has no valid kinds")

        session_names = [s.name for s in self.sessions]
        if len(set(session_names)) != len(session_names):
            raise ValueError(f"Duplicate session names in {session_names}")
        for session in self.sessions:
            if session.producer_role == session.consumer_role:
                raise ValueError(
                    f"Session {session.name!r} uses the same name for both roles"
                )

        if self.heartbeat_interval <= 0:
            raise ValueError("MAGICRELAY_HEARTBEAT_INTERVAL must be positive")
        return self


# Singleton — import this everywhere
settings = Settings()
