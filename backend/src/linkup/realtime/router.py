"""Dispatch of inbound realtime events."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Protocol

from pydantic import ValidationError

from app.monitoring.metrics import realtime_events_total, realtime_handler_errors_total

from . import protocol
from .connection import Connection
from .delivery import DeliveryPolicy
from .protocol import (
    AnswerCallPayload,
    CallUserPayload,
    EndCallPayload,
    MessageEnvelope,
    SendMessagePayload,
    TypingPayload,
)
from .registry import ConnectionRegistry
from .rooms import RoomRegistry, notification_room, personal_room


logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]


class MessageStore(Protocol):
    """Optional persistence collaborator for socket-originated messages."""

    async def save(self, envelope: MessageEnvelope) -> str | None:
        """Persist the envelope and return its identifier."""


class IdentityMismatchError(Exception):
    """A client supplied identity disagrees with the authenticated one."""


def resolve_identity(connection: Connection, claimed: str | None) -> str | None:
    """Return the identity an event acts on behalf of.

    Authenticated connections always act as their bound user; a differing
    claim is rejected. Anonymous connections act as whoever they claim.
    """

    if connection.user_id is None:
        return claimed
    if claimed is not None and claimed != connection.user_id:
        raise IdentityMismatchError(claimed)
    return connection.user_id


class EventRouter:
    """Single entry point for every inbound event of every connection."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        rooms: RoomRegistry,
        delivery: DeliveryPolicy,
        *,
        message_store: MessageStore | None = None,
        max_message_length: int | None = None,
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._delivery = delivery
        self._message_store = message_store
        self._max_message_length = max_message_length
        self._handlers: dict[str, Handler] = {
            protocol.JOIN: self._on_join,
            protocol.SEND_MESSAGE: self._on_send_message,
            protocol.TYPING_START: self._on_typing_start,
            protocol.TYPING_STOP: self._on_typing_stop,
            protocol.JOIN_NOTIFICATIONS: self._on_join_notifications,
            protocol.CALL_USER: self._on_call_user,
            protocol.ANSWER_CALL: self._on_answer_call,
            protocol.END_CALL: self._on_end_call,
            protocol.PING: self._on_ping,
            protocol.PONG: self._on_pong,
        }

    @property
    def events(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, connection: Connection, event: str, data: Any = None) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            await connection.emit(protocol.ERROR, {"error": "Unsupported event", "event": event})
            return
        realtime_events_total.labels(event, "in").inc()
        try:
            await handler(connection, data)
        except IdentityMismatchError as exc:
            logger.warning(
                "Rejected %s from %r claiming identity %s", event, connection, exc.args[0]
            )
            await connection.emit(protocol.ERROR, {"error": "Identity mismatch", "event": event})
        except ValidationError:
            logger.debug("Malformed %s payload from %r", event, connection)
            await connection.emit(protocol.ERROR, {"error": "Invalid payload", "event": event})
        except Exception:
            realtime_handler_errors_total.labels(event).inc()
            logger.exception("Unexpected error while handling %s from %r", event, connection)
            await connection.emit(protocol.ERROR, {"error": "Internal error", "event": event})

    async def disconnect(self, connection: Connection) -> str | None:
        await self._rooms.discard(connection.handle)
        user_id = await self._registry.unregister_by_handle(connection.handle)
        if user_id is not None:
            await self._delivery.broadcast_except(connection.handle, protocol.USER_OFFLINE, user_id)
            logger.info("User %s went offline (connection %s)", user_id, connection.handle)
        return user_id

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------
    async def _on_join(self, connection: Connection, data: Any) -> None:
        user_id = resolve_identity(connection, protocol.identity_from_payload(data))
        if user_id is None:
            await connection.emit(protocol.ERROR, {"error": "Missing user id", "event": protocol.JOIN})
            return
        registration = await self._registry.register_connection(user_id, connection.handle)
        if registration.evicted_user is not None:
            # The handle switched identity; its previous user is now offline.
            evicted = registration.evicted_user
            await self._rooms.leave(personal_room(evicted), connection.handle)
            await self._delivery.broadcast_except(connection.handle, protocol.USER_OFFLINE, evicted)
            logger.info(
                "User %s went offline (connection %s rejoined as %s)", evicted, connection.handle, user_id
            )
        await self._rooms.join(personal_room(user_id), connection.handle)
        await self._delivery.broadcast_except(connection.handle, protocol.USER_ONLINE, user_id)
        if registration.replaced_handle is not None:
            logger.info(
                "User %s reconnected on %s, replacing %s",
                user_id,
                connection.handle,
                registration.replaced_handle,
            )
        else:
            logger.info("User %s joined with connection %s", user_id, connection.handle)

    async def _on_join_notifications(self, connection: Connection, data: Any) -> None:
        user_id = resolve_identity(connection, protocol.identity_from_payload(data))
        if user_id is None:
            await connection.emit(
                protocol.ERROR, {"error": "Missing user id", "event": protocol.JOIN_NOTIFICATIONS}
            )
            return
        await self._rooms.join(notification_room(user_id), connection.handle)

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------
    async def _on_send_message(self, connection: Connection, data: Any) -> None:
        try:
            envelope = self._build_envelope(connection, data)
            message_id = None
            if self._message_store is not None:
                message_id = await self._message_store.save(envelope)
            wire = envelope.to_wire()
            await self._delivery.unicast(envelope.receiver, protocol.RECEIVE_MESSAGE, wire)
            await connection.emit(
                protocol.MESSAGE_SENT, {"messageId": message_id, "timestamp": wire["timestamp"]}
            )
        except (ValueError, IdentityMismatchError) as exc:
            logger.warning("Rejected socket message from %r: %s", connection, exc)
            await connection.emit(protocol.MESSAGE_ERROR, {"error": protocol.MESSAGE_ERROR_DETAIL})
        except Exception:
            realtime_handler_errors_total.labels(protocol.SEND_MESSAGE).inc()
            logger.exception("Socket message error from %r", connection)
            await connection.emit(protocol.MESSAGE_ERROR, {"error": protocol.MESSAGE_ERROR_DETAIL})

    def _build_envelope(self, connection: Connection, data: Any) -> MessageEnvelope:
        if not isinstance(data, dict):
            raise ValueError("send-message payload must be an object")
        payload = SendMessagePayload.model_validate(data)
        sender = resolve_identity(connection, payload.sender_id)
        if sender is None:
            raise ValueError("send-message payload is missing senderId")
        if self._max_message_length is not None and len(payload.content) > self._max_message_length:
            raise ValueError(f"Message exceeds maximum length of {self._max_message_length} characters")
        return MessageEnvelope(
            sender=sender,
            receiver=payload.receiver_id,
            content=payload.content,
            type=payload.type,
        )

    async def _on_typing_start(self, connection: Connection, data: Any) -> None:
        await self._relay_typing(connection, data, protocol.USER_TYPING)

    async def _on_typing_stop(self, connection: Connection, data: Any) -> None:
        await self._relay_typing(connection, data, protocol.USER_STOPPED_TYPING)

    async def _relay_typing(self, connection: Connection, data: Any, event: str) -> None:
        payload = TypingPayload.model_validate(data)
        sender = resolve_identity(connection, payload.sender_id)
        await self._delivery.unicast(payload.receiver_id, event, {"userId": sender})

    # ------------------------------------------------------------------
    # Call signalling
    # ------------------------------------------------------------------
    async def _on_call_user(self, connection: Connection, data: Any) -> None:
        payload = CallUserPayload.model_validate(data)
        caller = resolve_identity(connection, payload.from_)
        await self._delivery.unicast(
            payload.user_to_call,
            protocol.CALL_INCOMING,
            {"signal": payload.signal_data, "from": caller, "name": payload.name},
        )

    async def _on_answer_call(self, connection: Connection, data: Any) -> None:
        payload = AnswerCallPayload.model_validate(data)
        await self._delivery.unicast(payload.to, protocol.CALL_ACCEPTED, payload.signal)

    async def _on_end_call(self, connection: Connection, data: Any) -> None:
        payload = EndCallPayload.model_validate(data)
        await self._delivery.unicast(payload.to, protocol.CALL_ENDED)

    async def _on_ping(self, connection: Connection, data: Any) -> None:
        await connection.emit(protocol.PONG)

    async def _on_pong(self, connection: Connection, data: Any) -> None:
        """Keepalive reply; nothing to do."""
