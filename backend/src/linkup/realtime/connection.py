"""Live websocket connections attached to the realtime hub."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import realtime_connections, realtime_events_total

from .protocol import build_frame


logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: Any) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


def new_handle() -> str:
    return uuid.uuid4().hex


class Connection:
    """One accepted websocket session.

    ``handle`` is regenerated for every session while ``user_id`` is the
    identity bound at connect time from the bearer token. Anonymous sessions
    (allowed only when authentication is optional) have ``user_id`` set to
    ``None``.
    """

    def __init__(
        self,
        websocket: WebSocket,
        *,
        user_id: str | None = None,
        handle: str | None = None,
    ) -> None:
        self.websocket = websocket
        self.user_id = user_id
        self.handle = handle or new_handle()

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    async def emit(self, event: str, data: Any = None) -> bool:
        """Fire-and-forget delivery of a single event frame."""

        sent = await safe_send_json(self.websocket, build_frame(event, data))
        if sent:
            realtime_events_total.labels(event, "out").inc()
        return sent

    def __repr__(self) -> str:
        return f"<Connection handle={self.handle} user={self.user_id}>"


class ConnectionPool:
    """Tracks every live connection by handle, joined or not."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    async def add(self, connection: Connection) -> None:
        async with self._lock:
            if connection.handle not in self._connections:
                realtime_connections.inc()
            self._connections[connection.handle] = connection

    async def remove(self, handle: str) -> Connection | None:
        async with self._lock:
            connection = self._connections.pop(handle, None)
            if connection is not None:
                realtime_connections.dec()
            return connection

    async def get(self, handle: str) -> Connection | None:
        async with self._lock:
            return self._connections.get(handle)

    async def snapshot(self) -> list[Connection]:
        async with self._lock:
            return list(self._connections.values())

    async def clear(self) -> list[Connection]:
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
            realtime_connections.dec(len(connections))
            return connections

    async def count(self) -> int:
        async with self._lock:
            return len(self._connections)
