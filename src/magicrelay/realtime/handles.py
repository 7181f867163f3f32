"""Queue-backed connection handles handed to the relay engine."""

import asyncio
from typing import Optional

from magicrelay.events.types import HEARTBEAT_FRAME
from magicrelay.relay.errors import SubscriberWriteError


class QueueHandle:
    """Bounded outbound queue; send() never blocks, next() feeds the writer."""

    def __init__(self, maxsize: int = 64):
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def send(self, message: str) -> None:
        self._put(message)

    def _put(self, frame: str) -> None:
        if self.closed:
            raise SubscriberWriteError("Connection closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            raise SubscriberWriteError("Outbound queue full") from None

    def close(self) -> None:
        """Mark closed and wake the writer. Pending frames are discarded."""
        if self.closed:
            return
        self.closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def next(self) -> Optional[str]:
        """Next outbound frame, or None once the handle is closed."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class SSEHandle(QueueHandle):
    """Formats relay messages as text/event-stream frames."""

    def send(self, message: str) -> None:
        self._put(f"data: {message}\n\n")

    def ping(self) -> None:
        self._put(HEARTBEAT_FRAME)


class WebSocketHandle(QueueHandle):
    """Text frames for one side of a paired session."""
