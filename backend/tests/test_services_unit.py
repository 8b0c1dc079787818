"""Unit tests for notification and socket message persistence services."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any

import pytest
from fastapi.websockets import WebSocketState

from app.models import Message, Notification, NotificationType, User
from app.services import SqlMessageStore, create_notification, message_notification, publish_notification
from linkup.realtime import MessageEnvelope, RealtimeHub


pytestmark = pytest.mark.anyio("asyncio")


class DummyWebSocket:
    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)


@pytest.fixture()
def users(db_session):
    alice = User(email="alice@example.com", hashed_password="x", first_name="Alice", last_name="Liddell")
    bob = User(email="bob@example.com", hashed_password="x", first_name="Bob", last_name="Builder")
    db_session.add_all([alice, bob])
    db_session.commit()
    return alice, bob


async def test_sql_message_store_persists_envelope(session_factory, users):
    alice, bob = users

    @contextmanager
    def session_scope():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    store = SqlMessageStore(session_scope)
    message_id = await store.save(
        MessageEnvelope(sender=str(alice.id), receiver=str(bob.id), content="persist me")
    )

    with session_factory() as session:
        stored = session.get(Message, int(message_id))
        assert stored.content == "persist me"
        assert stored.sender_id == alice.id


async def test_sql_message_store_writes_off_the_event_loop_thread(session_factory, users):
    alice, bob = users
    threads: list[int] = []

    @contextmanager
    def session_scope():
        threads.append(threading.get_ident())
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    store = SqlMessageStore(session_scope)
    await store.save(MessageEnvelope(sender=str(alice.id), receiver=str(bob.id), content="threaded"))

    assert len(threads) == 1
    assert threads[0] != threading.get_ident()


async def test_sql_message_store_rejects_non_numeric_ids(session_factory):
    store = SqlMessageStore(session_factory)

    with pytest.raises(ValueError):
        await store.save(MessageEnvelope(sender="alice", receiver="bob", content="nope"))


async def test_message_notification_is_published_to_notification_room(db_session, users):
    alice, bob = users
    notification = message_notification(
        db_session, sender=alice, recipient_id=bob.id, message_id=10, preview="Hello Bob"
    )
    db_session.commit()

    hub = RealtimeHub()
    await hub.start()
    websocket = DummyWebSocket()
    connection = await hub.connect(websocket)
    await hub.dispatch(connection, "join-notifications", bob.id)

    delivered = await publish_notification(hub, notification)

    assert delivered == 1
    frame = websocket.sent[-1]
    assert frame["event"] == "notification"
    assert frame["data"]["title"] == "New message from Alice Liddell"
    assert frame["data"]["action_url"] == f"/messages/{alice.id}"
    assert await publish_notification(None, notification) == 0
    await hub.stop()


async def test_create_notification_truncates_long_text(db_session, users):
    _, bob = users

    notification = create_notification(
        db_session,
        recipient_id=bob.id,
        type=NotificationType.CONNECTION_REQUEST,
        title="t" * 150,
        message="m" * 600,
    )
    db_session.commit()

    stored = db_session.get(Notification, notification.id)
    assert len(stored.title) == 100
    assert len(stored.message) == 500
    assert stored.read is False
    assert stored.mark_read() is True
    assert stored.mark_read() is False
