"""Behaviour of the realtime hub against in-memory websockets."""

from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi.websockets import WebSocketState

from app.monitoring.metrics import (
    realtime_connections,
    realtime_deliveries_total,
    realtime_handler_errors_total,
)
from linkup.realtime import MessageEnvelope, RealtimeHub


pytestmark = pytest.mark.anyio("asyncio")


class DummyWebSocket:
    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []
        self.closed_with: int | None = None

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code
        self.application_state = WebSocketState.DISCONNECTED

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if name is None or frame["event"] == name]


class BrokenWebSocket(DummyWebSocket):
    async def send_json(self, payload: dict[str, Any]) -> None:
        raise RuntimeError("socket already closed")


class RecordingStore:
    def __init__(self) -> None:
        self.saved: list[MessageEnvelope] = []

    async def save(self, envelope: MessageEnvelope) -> str | None:
        self.saved.append(envelope)
        return str(len(self.saved))


class FailingStore:
    async def save(self, envelope: MessageEnvelope) -> str | None:
        raise ConnectionError("database unavailable")


@pytest.fixture()
async def hub():
    hub = RealtimeHub(max_message_length=20)
    await hub.start()
    try:
        yield hub
    finally:
        await hub.stop()


async def _joined(hub: RealtimeHub, user_id: str, *, authenticated: bool = False):
    websocket = DummyWebSocket()
    connection = await hub.connect(websocket, user_id=user_id if authenticated else None)
    await hub.dispatch(connection, "join", user_id)
    return connection, websocket


async def test_join_announces_presence_to_other_connections(hub):
    _, first = await _joined(hub, "A")
    _, second = await _joined(hub, "B")

    assert first.events("user-online") == [{"event": "user-online", "data": "B"}]
    assert second.events("user-online") == []
    assert await hub.online_users() == ["A", "B"]
    assert await hub.is_online("A")
    assert await hub.is_online(7) is False


async def test_join_accepts_object_payload_and_numeric_ids(hub):
    websocket = DummyWebSocket()
    connection = await hub.connect(websocket)

    await hub.dispatch(connection, "join", {"userId": 42})

    assert await hub.registry.lookup_connection("42") == connection.handle
    assert await hub.is_online(42)


async def test_join_without_identity_reports_error(hub):
    websocket = DummyWebSocket()
    connection = await hub.connect(websocket)

    await hub.dispatch(connection, "join", None)

    assert websocket.events("error")[0]["data"]["error"] == "Missing user id"
    assert await hub.registry.count() == 0


async def test_direct_message_reaches_receiver_and_acknowledges_sender(hub):
    sender, sender_ws = await _joined(hub, "A")
    _, receiver_ws = await _joined(hub, "B")

    await hub.dispatch(sender, "send-message", {"senderId": "A", "receiverId": "B", "content": "hi"})

    received = receiver_ws.events("receive-message")
    assert len(received) == 1
    envelope = received[0]["data"]
    assert envelope["sender"] == "A"
    assert envelope["receiver"] == "B"
    assert envelope["content"] == "hi"
    assert envelope["type"] == "text"

    acks = sender_ws.events("message-sent")
    assert acks == [
        {"event": "message-sent", "data": {"messageId": None, "timestamp": envelope["timestamp"]}}
    ]


async def test_message_to_offline_user_is_dropped_but_acknowledged(hub):
    sender, sender_ws = await _joined(hub, "A")
    before = realtime_deliveries_total.value("unicast", "offline")

    await hub.dispatch(sender, "send-message", {"senderId": "A", "receiverId": "ghost", "content": "hi"})

    assert sender_ws.events("message-sent")
    assert sender_ws.events("message-error") == []
    assert realtime_deliveries_total.value("unicast", "offline") == before + 1


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "just text",
        {"senderId": "A", "content": "no receiver"},
        {"senderId": "A", "receiverId": "B"},
        {"senderId": "A", "receiverId": "B", "content": "x" * 21},
        {"senderId": "A", "receiverId": "B", "content": "hi", "type": "hologram"},
    ],
)
async def test_malformed_messages_answer_with_message_error(hub, payload):
    sender, sender_ws = await _joined(hub, "A")
    _, receiver_ws = await _joined(hub, "B")

    await hub.dispatch(sender, "send-message", payload)

    assert sender_ws.events("message-error") == [
        {"event": "message-error", "data": {"error": "Failed to send message"}}
    ]
    assert sender_ws.events("message-sent") == []
    assert receiver_ws.events("receive-message") == []


async def test_reconnect_replaces_previous_connection(hub):
    _, old_ws = await _joined(hub, "A")
    _, new_ws = await _joined(hub, "A")
    sender, _ = await _joined(hub, "B")

    await hub.dispatch(sender, "send-message", {"senderId": "B", "receiverId": "A", "content": "hey"})

    assert new_ws.events("receive-message")
    assert old_ws.events("receive-message") == []
    assert await hub.online_users() == ["A", "B"]


async def test_closing_superseded_connection_keeps_user_online(hub):
    old_connection, _ = await _joined(hub, "A")
    new_connection, _ = await _joined(hub, "A")
    _, observer_ws = await _joined(hub, "B")

    await hub.disconnect(old_connection)

    assert await hub.registry.lookup_connection("A") == new_connection.handle
    assert observer_ws.events("user-offline") == []


async def test_rejoin_as_other_user_takes_previous_identity_offline(hub):
    _, observer_ws = await _joined(hub, "B")
    connection, websocket = await _joined(hub, "X")

    await hub.dispatch(connection, "join", "Y")

    assert observer_ws.events("user-online") == [
        {"event": "user-online", "data": "X"},
        {"event": "user-online", "data": "Y"},
    ]
    assert observer_ws.events("user-offline") == [{"event": "user-offline", "data": "X"}]
    assert await hub.is_online("X") is False
    assert await hub.rooms.members("X") == set()
    assert await hub.rooms.members("Y") == {connection.handle}

    await hub.disconnect(connection)

    assert observer_ws.events("user-offline")[-1] == {"event": "user-offline", "data": "Y"}
    assert await hub.online_users() == ["B"]


async def test_disconnect_announces_offline_and_cleans_rooms(hub):
    connection, _ = await _joined(hub, "A")
    await hub.dispatch(connection, "join-notifications", "A")
    _, observer_ws = await _joined(hub, "B")
    before = realtime_connections.value()

    await hub.disconnect(connection)

    assert observer_ws.events("user-offline") == [{"event": "user-offline", "data": "A"}]
    assert await hub.is_online("A") is False
    assert await hub.rooms.members("notifications-A") == set()
    assert realtime_connections.value() == before - 1


async def test_message_after_receiver_disconnects_is_not_delivered(hub):
    gone, gone_ws = await _joined(hub, "A")
    await hub.disconnect(gone)
    sender, sender_ws = await _joined(hub, "C")

    await hub.dispatch(sender, "send-message", {"senderId": "C", "receiverId": "A", "content": "hello"})

    assert gone_ws.events("receive-message") == []
    assert sender_ws.events("message-sent")
    assert sender_ws.events("message-error") == []


async def test_disconnect_before_join_is_silent(hub):
    _, observer_ws = await _joined(hub, "B")
    websocket = DummyWebSocket()
    connection = await hub.connect(websocket)

    await hub.disconnect(connection)
    await hub.disconnect(connection)

    assert observer_ws.events("user-offline") == []


async def test_typing_indicators_are_relayed(hub):
    typer, _ = await _joined(hub, "A")
    _, receiver_ws = await _joined(hub, "B")

    await hub.dispatch(typer, "typing-start", {"senderId": "A", "receiverId": "B"})
    await hub.dispatch(typer, "typing-stop", {"senderId": "A", "receiverId": "B"})
    await hub.dispatch(typer, "typing-start", {"senderId": "A", "receiverId": "nobody"})

    assert receiver_ws.events("user-typing") == [{"event": "user-typing", "data": {"userId": "A"}}]
    assert receiver_ws.events("user-stopped-typing") == [
        {"event": "user-stopped-typing", "data": {"userId": "A"}}
    ]


async def test_call_signalling_round_trip(hub):
    caller, caller_ws = await _joined(hub, "A")
    callee, callee_ws = await _joined(hub, "B")
    offer = {"type": "offer", "sdp": "v=0"}

    await hub.dispatch(
        caller, "call-user", {"userToCall": "B", "signalData": offer, "from": "A", "name": "Alice"}
    )
    await hub.dispatch(callee, "answer-call", {"to": "A", "signal": {"type": "answer"}})
    await hub.dispatch(callee, "end-call", {"to": "A"})

    assert callee_ws.events("call-incoming") == [
        {"event": "call-incoming", "data": {"signal": offer, "from": "A", "name": "Alice"}}
    ]
    assert caller_ws.events("call-accepted") == [{"event": "call-accepted", "data": {"type": "answer"}}]
    assert caller_ws.events("call-ended") == [{"event": "call-ended", "data": None}]


async def test_notifications_reach_every_joined_connection(hub):
    first, first_ws = await _joined(hub, "A")
    second_ws = DummyWebSocket()
    second = await hub.connect(second_ws)
    await hub.dispatch(first, "join-notifications", "A")
    await hub.dispatch(second, "join-notifications", {"userId": "A"})

    delivered = await hub.push_notification("A", {"title": "New connection"})

    assert delivered == 2
    assert first_ws.events("notification") == [{"event": "notification", "data": {"title": "New connection"}}]
    assert second_ws.events("notification") == first_ws.events("notification")
    assert await hub.push_notification("nobody", {"title": "x"}) == 0


async def test_authenticated_connection_cannot_act_as_someone_else(hub):
    connection, websocket = await _joined(hub, "A", authenticated=True)
    _, victim_ws = await _joined(hub, "B")

    await hub.dispatch(connection, "join", "B")
    await hub.dispatch(connection, "send-message", {"senderId": "B", "receiverId": "B", "content": "spoof"})
    await hub.dispatch(connection, "typing-start", {"senderId": "B", "receiverId": "B"})

    assert await hub.registry.lookup_connection("B") != connection.handle
    assert websocket.events("message-error")
    assert [frame["data"]["error"] for frame in websocket.events("error")] == [
        "Identity mismatch",
        "Identity mismatch",
    ]
    assert victim_ws.events("receive-message") == []
    assert victim_ws.events("user-typing") == []


async def test_authenticated_connection_defaults_sender_to_bound_identity(hub):
    connection, _ = await _joined(hub, "A", authenticated=True)
    _, receiver_ws = await _joined(hub, "B")

    await hub.dispatch(connection, "send-message", {"receiverId": "B", "content": "hi"})

    assert receiver_ws.events("receive-message")[0]["data"]["sender"] == "A"


async def test_message_store_assigns_identifier():
    store = RecordingStore()
    hub = RealtimeHub(message_store=store)
    await hub.start()
    sender, sender_ws = await _joined(hub, "1")
    await _joined(hub, "2")

    await hub.dispatch(sender, "send-message", {"senderId": 1, "receiverId": 2, "content": "stored"})

    assert [envelope.content for envelope in store.saved] == ["stored"]
    assert sender_ws.events("message-sent")[0]["data"]["messageId"] == "1"
    await hub.stop()


async def test_store_failure_reports_message_error():
    hub = RealtimeHub(message_store=FailingStore())
    await hub.start()
    sender, sender_ws = await _joined(hub, "1")
    _, receiver_ws = await _joined(hub, "2")
    before = realtime_handler_errors_total.value("send-message")

    await hub.dispatch(sender, "send-message", {"senderId": 1, "receiverId": 2, "content": "lost"})

    assert sender_ws.events("message-error")
    assert receiver_ws.events("receive-message") == []
    assert realtime_handler_errors_total.value("send-message") == before + 1
    await hub.stop()


async def test_unknown_and_malformed_frames(hub):
    websocket = DummyWebSocket()
    connection = await hub.connect(websocket)

    await hub.handle_frame(connection, "not json")
    await hub.handle_frame(connection, json.dumps(["join", "A"]))
    await hub.handle_frame(connection, json.dumps({"event": "dance", "data": {}}))
    await hub.handle_frame(connection, json.dumps({"event": "typing-start", "data": {"senderId": "A"}}))
    await hub.handle_frame(connection, json.dumps({"event": "ping"}))

    errors = [frame["data"] for frame in websocket.events("error")]
    assert errors[0] == {"error": "Invalid payload"}
    assert errors[1] == {"error": "Frame must be a JSON object"}
    assert errors[2] == {"error": "Unsupported event", "event": "dance"}
    assert errors[3] == {"error": "Invalid payload", "event": "typing-start"}
    assert websocket.events("pong") == [{"event": "pong", "data": None}]


async def test_failed_send_does_not_disturb_other_deliveries(hub):
    broken = BrokenWebSocket()
    await hub.connect(broken)
    _, healthy_ws = await _joined(hub, "B")

    delivered = await hub.delivery.broadcast_except(None, "user-online", "X")

    assert delivered == 1
    assert healthy_ws.events("user-online")[-1] == {"event": "user-online", "data": "X"}


async def test_stop_closes_sockets_and_clears_state():
    hub = RealtimeHub()
    await hub.start()
    _, websocket = await _joined(hub, "A")
    await hub.dispatch((await hub.connections.snapshot())[0], "join-notifications", "A")

    await hub.stop()

    assert hub.running is False
    assert websocket.closed_with == 1001
    assert await hub.connections.count() == 0
    assert await hub.online_users() == []
    assert await hub.rooms.members("notifications-A") == set()
