"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance with its own Registry on app.state. Channels and sessions are
built here, not in the lifespan, so a test client that never runs the
lifespan still gets a working relay.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from magicrelay import __version__
from magicrelay.api import api_router
from magicrelay.config import Settings, settings as default_settings
from magicrelay.relay.registry import build_registry
from magicrelay.relay.session import NotificationSink
from magicrelay.services.pushover import PushoverSink

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    config: Settings = app.state.settings
    logger.info(
        "magicrelay.starting",
        version=__version__,
        environment=config.environment,
        port=config.port,
        channels=[c.name for c in config.channels],
        sessions=[s.name for s in config.sessions],
        pushover=app.state.sink is not None,
    )

    yield

    logger.info("magicrelay.shutdown")

    # Let in-flight notifications finish before the HTTP client goes away
    for session in app.state.registry.sessions():
        await session.drain()

    sink = app.state.sink
    if sink is not None and hasattr(sink, "aclose"):
        await sink.aclose()


def create_app(
    config: Optional[Settings] = None,
    *,
    sink: Optional[NotificationSink] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    config = config or default_settings
    if sink is None:
        sink = PushoverSink.from_settings(config)

    app = FastAPI(
        title="Magic Relay",
        description="Real-time event relay: broadcast channels and paired sessions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.sink = sink
    app.state.registry = build_registry(config, sink=sink)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from magicrelay.middleware.request_id import RequestIdMiddleware
    from magicrelay.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    # Paired sessions over WebSocket (including the legacy "/" address)
    from magicrelay.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def root():
        return "Magic Relay running"

    return app


# Default app instance (used by uvicorn: magicrelay.main:app)
app = create_app()
