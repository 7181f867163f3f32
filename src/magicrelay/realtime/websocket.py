"""WebSocket endpoint — paired session relay.

Learn: Each device connects to /ws/sessions/{session}?role=<role name>.
The handler:
1. Resolves the session and role (unknown → close before accept)
2. Registers a WebSocketHandle in the role slot
3. Forwards every inbound frame to the session (which relays to the peer)
4. Drains the handle's queue to the socket
5. Clears the slot when either side stops

The original deployment addressed sessions as /?role=...&canal=...;
that address is still served so existing client pages keep working.
"""

import asyncio
from typing import Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from magicrelay.events.types import (
    WS_CLOSE_BAD_ROLE,
    WS_CLOSE_SUPERSEDED,
    WS_CLOSE_UNKNOWN_SESSION,
)
from magicrelay.realtime.handles import WebSocketHandle
from magicrelay.relay.errors import UnknownSessionError

logger = structlog.get_logger()
router = APIRouter()

DEFAULT_SESSION = "default"


@router.websocket("/ws/sessions/{session_name}")
async def session_websocket(websocket: WebSocket, session_name: str):
    """Join one role slot of a paired session."""
    await _relay(websocket, session_name, websocket.query_params.get("role"))


@router.websocket("/")
async def legacy_websocket(websocket: WebSocket):
    """Legacy address: ?role=spectateur|magicien&canal=atelier."""
    session_name = websocket.query_params.get("canal") or DEFAULT_SESSION
    await _relay(websocket, session_name, websocket.query_params.get("role"))


async def _relay(websocket: WebSocket, session_name: str, role_name: Optional[str]):
    registry = websocket.app.state.registry
    config = websocket.app.state.settings

    try:
        session = registry.session(session_name)
    except UnknownSessionError:
        logger.info("ws.unknown_session", session=session_name)
        await websocket.close(code=WS_CLOSE_UNKNOWN_SESSION, reason="Unknown session")
        return

    role = session.resolve_role(role_name)
    if role is None:
        logger.info("ws.bad_role", session=session_name, role=role_name)
        await websocket.close(code=WS_CLOSE_BAD_ROLE, reason="Unknown role")
        return

    await websocket.accept()
    handle = WebSocketHandle(maxsize=config.subscriber_queue_size)
    session.connect(role, handle)

    async def writer():
        """Drain the handle onto the socket until it is closed."""
        try:
            while True:
                text = await handle.next()
                if text is None:
                    return
                await websocket.send_text(text)
        except (WebSocketDisconnect, RuntimeError, asyncio.CancelledError):
            pass

    async def reader():
        """Hand every inbound frame to the session."""
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    return
                data = message.get("text")
                if data is None:
                    try:
                        data = (message.get("bytes") or b"").decode("utf-8")
                    except UnicodeDecodeError as e:
                        logger.warning(
                            "session.malformed_message",
                            session=session.name,
                            role=role_name,
                            error=f"Binary frame is not UTF-8: {e.reason}",
                        )
                        continue
                session.message(role, handle, data)
        except (WebSocketDisconnect, asyncio.CancelledError):
            pass

    writer_task = asyncio.create_task(writer())
    reader_task = asyncio.create_task(reader())

    try:
        done, pending = await asyncio.wait(
            [writer_task, reader_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
    finally:
        occupant = session.handle_for(role)
        superseded = occupant is not None and occupant is not handle
        session.disconnect(role, handle)
        handle.close()
        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                if superseded:
                    await websocket.close(code=WS_CLOSE_SUPERSEDED, reason="Superseded")
                else:
                    await websocket.close()
            except RuntimeError:
                pass
