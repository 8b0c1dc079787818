"""Connection-scoped room membership."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Dict, Set


def personal_room(user_id: str) -> str:
    return user_id


def notification_room(user_id: str) -> str:
    return f"notifications-{user_id}"


class RoomRegistry:
    """Track which connection handles joined which named rooms.

    Membership belongs to the connection: :meth:`discard` removes a handle
    from every room it joined, and the hub calls it when the socket closes.
    """

    def __init__(self) -> None:
        self._members: Dict[str, Set[str]] = defaultdict(set)
        self._joined: Dict[str, Set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def join(self, room: str, handle: str) -> None:
        async with self._lock:
            self._members[room].add(handle)
            self._joined[handle].add(room)

    async def leave(self, room: str, handle: str) -> None:
        async with self._lock:
            self._remove_locked(room, handle)

    async def discard(self, handle: str) -> set[str]:
        async with self._lock:
            rooms = self._joined.pop(handle, set())
            for room in rooms:
                members = self._members.get(room)
                if members is None:
                    continue
                members.discard(handle)
                if not members:
                    self._members.pop(room, None)
            return rooms

    async def members(self, room: str) -> set[str]:
        async with self._lock:
            return set(self._members.get(room, ()))

    async def rooms_of(self, handle: str) -> set[str]:
        async with self._lock:
            return set(self._joined.get(handle, ()))

    async def clear(self) -> None:
        async with self._lock:
            self._members.clear()
            self._joined.clear()

    def _remove_locked(self, room: str, handle: str) -> None:
        members = self._members.get(room)
        if members is not None:
            members.discard(handle)
            if not members:
                self._members.pop(room, None)
        joined = self._joined.get(handle)
        if joined is not None:
            joined.discard(room)
            if not joined:
                self._joined.pop(handle, None)
