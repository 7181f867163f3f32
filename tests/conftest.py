"""Test fixtures — a fresh app and registry per test.

Learn: create_app() builds its Registry eagerly, so every test gets
isolated channels and sessions without touching the module-level app.
Time is injected through FakeClock wherever TTLs matter, and connection
handles are replaced by FakeHandle, which just records what it was sent.
"""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from magicrelay.config import ChannelSettings, SessionSettings, Settings
from magicrelay.main import create_app
from magicrelay.relay.errors import SubscriberWriteError


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHandle:
    """Connection stand-in: records frames, can be told to fail."""

    def __init__(self, fail: bool = False):
        self.sent: list[str] = []
        self.fail = fail
        self.closed = False

    def send(self, message: str) -> None:
        if self.fail:
            raise SubscriberWriteError("broken pipe")
        self.sent.append(message)

    def close(self) -> None:
        self.closed = True

    @property
    def messages(self) -> list[dict]:
        return [json.loads(m) for m in self.sent]

    @property
    def types(self) -> list[str]:
        return [m.get("type") for m in self.messages]


class RecordingSink:
    def __init__(self, error: Exception | None = None):
        self.artifacts: list[str] = []
        self.error = error

    async def deliver(self, artifact: str) -> None:
        self.artifacts.append(artifact)
        if self.error is not None:
            raise self.error


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def handle_factory():
    return FakeHandle


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def failing_sink():
    return RecordingSink(error=RuntimeError("pushover down"))


@pytest.fixture()
def config():
    """Settings with a short heartbeat and the symbol sets used in tests."""
    symbols = ["circle", "cross", "waves"]
    return Settings(
        heartbeat_interval=0.05,
        channels=[
            ChannelSettings(name="zener", kinds=symbols, ttl_seconds=60),
            ChannelSettings(name="oracle", kinds=symbols, ttl_seconds=600),
            ChannelSettings(name="reveal", kinds=symbols, ttl_seconds=60, silent_catch_up=True),
        ],
        sessions=[SessionSettings(name="default"), SessionSettings(name="atelier")],
        pushover_token="",
        pushover_user="",
    )


@pytest.fixture()
def app(config, sink):
    return create_app(config, sink=sink)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client bound to the per-test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
