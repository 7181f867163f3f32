"""Per-subscription keep-alive pulse.

Learn: Proxies and load balancers reclaim connections that look idle.
A push subscription may legitimately carry nothing for minutes, so each
one gets its own timer that writes a no-op frame every interval.

Teardown order matters: the transport cancels the timer first and only
then removes the subscriber, so a pulse can never fire into a handle the
channel has already let go of.
"""

import asyncio
from typing import Callable, Optional

import structlog

logger = structlog.get_logger()


class HeartbeatTimer:
    """Invoke `pulse` every `interval` seconds until cancelled or failed."""

    def __init__(
        self,
        pulse: Callable[[], None],
        interval: float = 25.0,
        *,
        on_failure: Optional[Callable[[], None]] = None,
        name: str = "heartbeat",
    ):
        self.pulse = pulse
        self.interval = interval
        self.on_failure = on_failure
        self.name = name
        self.beats = 0
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def active(self) -> bool:
        return self._task is not None and not self._stopped

    def start(self) -> "HeartbeatTimer":
        """Schedule the timer on the running event loop."""
        if self._task is not None:
            raise RuntimeError(f"{self.name} already started")
        self._task = asyncio.create_task(self._run(), name=self.name)
        return self

    def cancel(self) -> None:
        """Stop pulsing. Idempotent; no pulse fires after this returns."""
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval)
            if self._stopped:
                return
            try:
                self.pulse()
            except Exception as e:
                self._stopped = True
                logger.info("heartbeat.write_failed", timer=self.name, error=repr(e))
                if self.on_failure is not None:
                    self.on_failure()
                return
            self.beats += 1
