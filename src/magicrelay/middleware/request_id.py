"""Request ID middleware — correlate log lines for one HTTP request.

Learn: Every request gets an ID, either from the incoming X-Request-ID
header (set by the hosting proxy) or generated here. It is bound to
structlog's contextvars together with the path, so channel.published and
friends can be traced back to the trigger that caused them.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate, bind, and echo a request ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
