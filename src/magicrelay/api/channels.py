"""Channel API routes — publish, poll, and stream broadcast events.

Learn: Ingress answers 204 with an empty body. Whoever is watching the
performer's phone (or the network) learns nothing from the response;
only the subscribed devices see the event.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from magicrelay.config import Settings
from magicrelay.events.types import INVALID_SYMBOL, UNKNOWN_CHANNEL
from magicrelay.realtime.sse import channel_stream_response
from magicrelay.relay.channel import BroadcastChannel
from magicrelay.relay.errors import InvalidSymbolError, UnknownChannelError
from magicrelay.relay.registry import Registry
from magicrelay.schemas.channel import ChannelRead, EventPublish, LatestRead

router = APIRouter()

RESERVED_TRIGGER_PARAMS = {"kind", "magnitude"}


def get_registry(request: Request) -> Registry:
    return request.app.state.registry


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _channel(channel: str, registry: Registry = Depends(get_registry)) -> BroadcastChannel:
    try:
        return registry.channel(channel)
    except UnknownChannelError as e:
        raise HTTPException(
            status_code=404,
            detail={"error": UNKNOWN_CHANNEL, "channel": channel, "message": str(e)},
        )


def _publish(ch: BroadcastChannel, body: EventPublish) -> Response:
    try:
        ch.publish(body.kind, body.magnitude, body.extra)
    except InvalidSymbolError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": INVALID_SYMBOL, "kind": e.kind, "valid": e.valid},
        )
    return Response(status_code=204)


# ─── Ingress ──────────────────────────────────────────────────


@router.post("/channels/{channel}/events", status_code=204)
async def publish_event(body: EventPublish, ch: BroadcastChannel = Depends(_channel)):
    """Publish one event to every subscriber of the channel."""
    return _publish(ch, body)


@router.get("/channels/{channel}/trigger", status_code=204)
async def trigger_event(request: Request, ch: BroadcastChannel = Depends(_channel)):
    """GET form of publish for trigger apps that cannot POST JSON.

    Every query parameter other than kind and magnitude is carried in extra.
    """
    params = request.query_params
    body = EventPublish(
        kind=params.get("kind"),
        magnitude=params.get("magnitude"),
        extra={k: v for k, v in params.items() if k not in RESERVED_TRIGGER_PARAMS},
    )
    return _publish(ch, body)


# ─── Egress ───────────────────────────────────────────────────


@router.get("/channels/{channel}/latest", response_model=LatestRead)
async def latest_event(ch: BroadcastChannel = Depends(_channel)):
    """Cached event while within TTL, otherwise fresh=false and no event."""
    event = ch.peek_latest()
    if event is None:
        return LatestRead(fresh=False)
    return LatestRead(fresh=True, event=event.to_dict())


@router.get("/channels/{channel}/stream")
async def stream_events(
    ch: BroadcastChannel = Depends(_channel),
    settings: Settings = Depends(get_settings),
):
    """Long-lived SSE stream: catch-up event, live events, heartbeats."""
    return channel_stream_response(
        ch,
        heartbeat_interval=settings.heartbeat_interval,
        queue_size=settings.subscriber_queue_size,
    )


@router.get("/channels", response_model=list[ChannelRead])
async def list_channels(registry: Registry = Depends(get_registry)):
    return [
        ChannelRead(
            name=ch.name,
            kinds=sorted(ch.kinds),
            ttl_seconds=ch.ttl_seconds,
            silent_catch_up=ch.silent_catch_up,
            subscribers=ch.subscriber_count,
        )
        for ch in registry.channels()
    ]
