"""Server-Sent Events egress for broadcast channels.

Learn: One generator per connected client. It owns three things for the
life of the stream:
1. An SSEHandle registered with the channel (catch-up + live events)
2. A HeartbeatTimer writing ": ping" comments into the same handle
3. The teardown: cancel the timer, then unsubscribe, then close

Starlette cancels the generator when the client goes away, so the
finally block is the single place a subscription ends.
"""

from typing import AsyncIterator

import structlog
from fastapi.responses import StreamingResponse

from magicrelay.relay.channel import BroadcastChannel
from magicrelay.relay.heartbeat import HeartbeatTimer
from magicrelay.realtime.handles import SSEHandle

logger = structlog.get_logger()

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # nginx: do not buffer the stream
}


async def channel_event_stream(
    channel: BroadcastChannel,
    *,
    heartbeat_interval: float = 25.0,
    queue_size: int = 64,
) -> AsyncIterator[str]:
    """Yield SSE frames for `channel` until the client disconnects."""
    handle = SSEHandle(maxsize=queue_size)

    def teardown() -> None:
        timer.cancel()
        channel.unsubscribe(handle)
        handle.close()

    timer = HeartbeatTimer(
        handle.ping,
        heartbeat_interval,
        on_failure=teardown,
        name=f"heartbeat:{channel.name}",
    )

    subscription_id = channel.subscribe(handle)
    timer.start()
    try:
        while True:
            frame = await handle.next()
            if frame is None:
                break
            yield frame
    finally:
        teardown()
        logger.info(
            "sse.closed",
            channel=channel.name,
            subscription_id=subscription_id,
            heartbeats=timer.beats,
        )


def channel_stream_response(channel: BroadcastChannel, **kwargs) -> StreamingResponse:
    return StreamingResponse(
        channel_event_stream(channel, **kwargs),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
