"""Pushover notification sink — sends the finished drawing to the performer.

Learn: The terminal message of a paired session carries the artifact as a
data URL (data:image/png;base64,....). We strip the header, decode the
bytes, and upload them as the message attachment. The call is
fire-and-forget from the session's point of view: the session logs
whatever we raise and nobody retries.
"""

import base64
import binascii
import re
from typing import Optional

import httpx
import structlog

from magicrelay.config import Settings

logger = structlog.get_logger()

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,")


class NotificationError(Exception):
    pass


def decode_artifact(artifact: str) -> tuple[bytes, str]:
    """Return (bytes, mime type) for a base64 payload with optional data-URL header."""
    mime = "image/png"
    match = _DATA_URL.match(artifact)
    if match:
        mime = match.group("mime")
        artifact = artifact[match.end():]
    try:
        return base64.b64decode(artifact, validate=True), mime
    except (binascii.Error, ValueError) as e:
        raise NotificationError(f"Artifact is not valid base64: {e}") from e


class PushoverSink:
    """NotificationSink backed by the Pushover messages API."""

    def __init__(
        self,
        token: str,
        user: str,
        *,
        url: str = "https://api.pushover.net/1/messages.json",
        title: str = "Magic Draw",
        message: str = "New drawing from the spectator!",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token
        self.user = user
        self.url = url
        self.title = title
        self.message = message
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["PushoverSink"]:
        """Build a sink, or None when Pushover credentials are not configured."""
        if not settings.pushover_enabled:
            return None
        return cls(
            settings.pushover_token,
            settings.pushover_user,
            url=settings.pushover_url,
            title=settings.pushover_title,
            message=settings.pushover_message,
            timeout=settings.pushover_timeout,
        )

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def deliver(self, artifact: str) -> None:
        image, mime = decode_artifact(artifact)
        extension = mime.split("/")[-1]

        try:
            r = await self._http().post(
                self.url,
                data={
                    "token": self.token,
                    "user": self.user,
                    "message": self.message,
                    "title": self.title,
                },
                files={"attachment": (f"drawing.{extension}", image, mime)},
            )
        except httpx.HTTPError as e:
            raise NotificationError(f"Pushover request failed: {e}") from e

        if r.status_code >= 400:
            raise NotificationError(f"Pushover returned {r.status_code}: {r.text[:200]}")
        logger.info("pushover.sent", bytes=len(image), status=r.status_code)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
