"""Database-backed persistence for messages sent over the websocket."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Callable

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.models import Message
from linkup.realtime import MessageEnvelope


class SqlMessageStore:
    """Stores socket messages before the hub forwards them.

    ``session_factory`` returns a context manager yielding a session, e.g.
    :func:`app.database.get_db_session`.
    """

    def __init__(self, session_factory: Callable[[], AbstractContextManager[Session]]) -> None:
        self._session_factory = session_factory

    async def save(self, envelope: MessageEnvelope) -> str | None:
        return await run_in_threadpool(self._save_sync, envelope)

    def _save_sync(self, envelope: MessageEnvelope) -> str:
        sender_id = int(envelope.sender)
        receiver_id = int(envelope.receiver)
        with self._session_factory() as db:
            message = Message(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=envelope.content,
                type=envelope.type,
                created_at=envelope.timestamp,
            )
            db.add(message)
            db.commit()
            return str(message.id)
