"""Presence and realtime delivery hub owned by the application process."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import status
from fastapi.websockets import WebSocket, WebSocketState

from . import protocol
from .connection import Connection, ConnectionPool
from .delivery import DeliveryPolicy
from .protocol import ProtocolError, parse_frame
from .registry import ConnectionRegistry
from .rooms import RoomRegistry, notification_room
from .router import EventRouter, MessageStore


logger = logging.getLogger(__name__)


class RealtimeHub:
    """Owns the registry, rooms, delivery policy and router of one process.

    The hub is created when the server starts and stopped when it shuts
    down; every websocket handler and REST endpoint receives the same
    instance explicitly.
    """

    def __init__(
        self,
        *,
        registry: ConnectionRegistry | None = None,
        rooms: RoomRegistry | None = None,
        connections: ConnectionPool | None = None,
        message_store: MessageStore | None = None,
        max_message_length: int | None = None,
    ) -> None:
        self.registry = registry or ConnectionRegistry()
        self.rooms = rooms or RoomRegistry()
        self.connections = connections or ConnectionPool()
        self.delivery = DeliveryPolicy(self.registry, self.rooms, self.connections)
        self.router = EventRouter(
            self.registry,
            self.rooms,
            self.delivery,
            message_store=message_store,
            max_message_length=max_message_length,
        )
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        self._running = True
        logger.info("Realtime hub started")

    async def stop(self) -> None:
        self._running = False
        connections = await self.connections.clear()
        for connection in connections:
            websocket = connection.websocket
            if websocket.application_state != WebSocketState.CONNECTED:
                continue
            try:
                await websocket.close(code=status.WS_1001_GOING_AWAY)
            except RuntimeError:
                continue
        await self.rooms.clear()
        await self.registry.clear()
        logger.info("Realtime hub stopped; closed %d connection(s)", len(connections))

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    async def connect(self, websocket: WebSocket, *, user_id: str | None = None) -> Connection:
        connection = Connection(websocket, user_id=user_id)
        await self.connections.add(connection)
        logger.info("Connection %s opened (user=%s)", connection.handle, user_id)
        return connection

    async def disconnect(self, connection: Connection) -> None:
        await self.router.disconnect(connection)
        await self.connections.remove(connection.handle)
        logger.info("Connection %s closed", connection.handle)

    async def dispatch(self, connection: Connection, event: str, data: Any = None) -> None:
        await self.router.dispatch(connection, event, data)

    async def handle_frame(self, connection: Connection, raw: str) -> None:
        """Decode and dispatch one inbound text frame."""

        try:
            event, data = parse_frame(raw)
        except ProtocolError as exc:
            await connection.emit(protocol.ERROR, {"error": str(exc)})
            return
        await self.dispatch(connection, event, data)

    # ------------------------------------------------------------------
    # Helpers for the REST layer
    # ------------------------------------------------------------------
    async def notify_user(self, user_id: Any, event: str, data: Any = None) -> bool:
        target = protocol.normalize_identity(user_id)
        if target is None:
            return False
        return await self.delivery.unicast(target, event, data)

    async def push_notification(self, user_id: Any, payload: dict[str, Any]) -> int:
        target = protocol.normalize_identity(user_id)
        if target is None:
            return 0
        return await self.delivery.multicast(notification_room(target), protocol.NOTIFICATION, payload)

    async def online_users(self) -> list[str]:
        return await self.registry.online_users()

    async def is_online(self, user_id: Any) -> bool:
        target = protocol.normalize_identity(user_id)
        if target is None:
            return False
        return await self.registry.lookup_connection(target) is not None
