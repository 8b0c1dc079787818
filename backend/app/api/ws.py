"""WebSocket endpoint carrying presence, chat, notification and call events."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from functools import partial
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket, status
from fastapi.exceptions import HTTPException
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.api.deps import get_user_from_token
from app.config import get_settings
from app.database import get_db_session
from linkup.realtime import RealtimeHub, safe_send_json
from linkup.realtime.protocol import ERROR, PING, build_frame

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")

_REJECTED = object()


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or build_frame(PING)
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = interval <= 0 or (
                now - last_activity >= interval
                and (last_ping_sent is None or now - last_ping_sent >= interval)
            )
            if should_ping:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


async def receive_text_frame(websocket: WebSocket) -> str | None:
    """Return the next text frame, or ``None`` when the client sent binary data."""

    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(
            message.get("code", status.WS_1000_NORMAL_CLOSURE), message.get("reason")
        )
    return message.get("text")


def _extract_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.removeprefix("Bearer ").strip()
    return token or None


async def _resolve_identity(websocket: WebSocket) -> str | None | object:
    """Return the authenticated user id, ``None`` for anonymous, or ``_REJECTED``."""

    token = _extract_token(websocket)
    if token is None:
        if settings.realtime_require_auth:
            logger.info("Rejected websocket from %s: missing token", websocket.client)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing token")
            return _REJECTED
        return None

    try:
        with get_db_session() as db:
            user = get_user_from_token(token, db)
            return str(user.id)
    except HTTPException:
        logger.info("Rejected websocket from %s: invalid token", websocket.client)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return _REJECTED


@router.websocket("/events")
async def websocket_events(websocket: WebSocket) -> None:
    """Single realtime stream per client: presence, chat, notifications and calls."""

    hub: RealtimeHub | None = getattr(websocket.app.state, "hub", None)
    if hub is None or not hub.running:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Realtime hub unavailable")
        return

    user_id = await _resolve_identity(websocket)
    if user_id is _REJECTED:
        return

    await websocket.accept()
    connection = await hub.connect(websocket, user_id=user_id)
    try:
        async for raw_message in iter_keepalive_messages(
            websocket,
            partial(receive_text_frame, websocket),
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            if raw_message is None:
                await connection.emit(ERROR, {"error": "Binary frames are not supported"})
                continue
            await hub.handle_frame(connection, raw_message)
    finally:
        await hub.disconnect(connection)
