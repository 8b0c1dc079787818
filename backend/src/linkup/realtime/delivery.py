"""Translate "deliver to user" into "deliver to connection"."""

from __future__ import annotations

import logging
from typing import Any

from app.monitoring.metrics import realtime_deliveries_total

from .connection import ConnectionPool
from .registry import ConnectionRegistry
from .rooms import RoomRegistry


logger = logging.getLogger(__name__)


class DeliveryPolicy:
    """Unicast, room multicast and broadcast-except-self delivery.

    Delivery is best effort: nothing is queued or retried, and a target
    that is not registered is a silent miss.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        rooms: RoomRegistry,
        connections: ConnectionPool,
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._connections = connections

    async def unicast(self, user_id: str, event: str, data: Any = None) -> bool:
        handle = await self._registry.lookup_connection(user_id)
        if handle is None:
            logger.debug("Dropping %s for offline user %s", event, user_id)
            realtime_deliveries_total.labels("unicast", "offline").inc()
            return False
        return await self.send_to_handle(handle, event, data, mode="unicast")

    async def send_to_handle(
        self, handle: str, event: str, data: Any = None, *, mode: str = "direct"
    ) -> bool:
        connection = await self._connections.get(handle)
        if connection is None:
            realtime_deliveries_total.labels(mode, "gone").inc()
            return False
        sent = await connection.emit(event, data)
        realtime_deliveries_total.labels(mode, "sent" if sent else "failed").inc()
        return sent

    async def multicast(self, room: str, event: str, data: Any = None) -> int:
        delivered = 0
        for handle in await self._rooms.members(room):
            if await self.send_to_handle(handle, event, data, mode="multicast"):
                delivered += 1
        return delivered

    async def broadcast_except(self, handle: str | None, event: str, data: Any = None) -> int:
        delivered = 0
        for connection in await self._connections.snapshot():
            if connection.handle == handle:
                continue
            sent = await connection.emit(event, data)
            realtime_deliveries_total.labels("broadcast", "sent" if sent else "failed").inc()
            if sent:
                delivered += 1
        return delivered
