"""Registry mapping user identities to their live connection handle."""

from __future__ import annotations

import asyncio
from typing import NamedTuple

from app.monitoring.metrics import realtime_registered_users


class Registration(NamedTuple):
    """Outcome of binding a user to a handle.

    ``replaced_handle`` is the user's previous handle, if any. ``evicted_user``
    is the identity the handle was bound to before, if it differed.
    """

    replaced_handle: str | None = None
    evicted_user: str | None = None


class ConnectionRegistry:
    """Bidirectional map between user identities and connection handles.

    Each user has at most one handle and each handle belongs to at most one
    user. Registering a user again replaces its previous handle (last writer
    wins); the replaced handle simply stops resolving, its owner is not
    notified.
    """

    def __init__(self) -> None:
        self._by_user: dict[str, str] = {}
        self._by_handle: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def register_connection(self, user_id: str, handle: str) -> Registration:
        """Map ``user_id`` to ``handle`` and report what the binding displaced."""

        async with self._lock:
            replaced_handle = self._by_user.get(user_id)
            if replaced_handle == handle:
                replaced_handle = None
            elif replaced_handle is not None:
                self._by_handle.pop(replaced_handle, None)

            evicted_user = self._by_handle.get(handle)
            if evicted_user == user_id:
                evicted_user = None
            elif evicted_user is not None:
                self._by_user.pop(evicted_user, None)

            self._by_user[user_id] = handle
            self._by_handle[handle] = user_id
            realtime_registered_users.set(len(self._by_user))
            return Registration(replaced_handle, evicted_user)

    async def lookup_connection(self, user_id: str) -> str | None:
        async with self._lock:
            return self._by_user.get(user_id)

    async def lookup_user(self, handle: str) -> str | None:
        async with self._lock:
            return self._by_handle.get(handle)

    async def unregister_by_handle(self, handle: str) -> str | None:
        """Drop the entry owned by ``handle``; unknown handles are ignored."""

        async with self._lock:
            user_id = self._by_handle.pop(handle, None)
            if user_id is None:
                return None
            if self._by_user.get(user_id) == handle:
                self._by_user.pop(user_id, None)
            realtime_registered_users.set(len(self._by_user))
            return user_id

    async def online_users(self) -> list[str]:
        async with self._lock:
            return sorted(self._by_user)

    async def count(self) -> int:
        async with self._lock:
            return len(self._by_user)

    async def clear(self) -> None:
        async with self._lock:
            self._by_user.clear()
            self._by_handle.clear()
            realtime_registered_users.set(0)
