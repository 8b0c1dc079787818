"""Wire-level contract of the realtime websocket.

Frames travel in both directions as JSON objects of the form
``{"event": "<name>", "data": <payload>}``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Inbound events ----------------------------------------------------------------
JOIN = "join"
SEND_MESSAGE = "send-message"
TYPING_START = "typing-start"
TYPING_STOP = "typing-stop"
JOIN_NOTIFICATIONS = "join-notifications"
CALL_USER = "call-user"
ANSWER_CALL = "answer-call"
END_CALL = "end-call"
PING = "ping"

# Outbound events ---------------------------------------------------------------
USER_ONLINE = "user-online"
USER_OFFLINE = "user-offline"
RECEIVE_MESSAGE = "receive-message"
MESSAGE_SENT = "message-sent"
MESSAGE_ERROR = "message-error"
MESSAGE_READ = "message-read"
USER_TYPING = "user-typing"
USER_STOPPED_TYPING = "user-stopped-typing"
CALL_INCOMING = "call-incoming"
CALL_ACCEPTED = "call-accepted"
CALL_ENDED = "call-ended"
NOTIFICATION = "notification"
PONG = "pong"
ERROR = "error"

MESSAGE_ERROR_DETAIL = "Failed to send message"


class ProtocolError(ValueError):
    """Raised when an inbound frame cannot be interpreted."""


class MessageType(str, Enum):
    """Kinds of chat message content."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    VOICE = "voice"


def normalize_identity(value: Any) -> str | None:
    """Coerce a client supplied user id into the registry key format."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, str)):
        text = str(value).strip()
        return text or None
    return None


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SendMessagePayload(_Payload):
    sender_id: str | None = Field(default=None, alias="senderId")
    receiver_id: str = Field(..., alias="receiverId")
    content: str
    type: MessageType = MessageType.TEXT

    @field_validator("sender_id", "receiver_id", mode="before")
    @classmethod
    def coerce_identity(cls, value: Any) -> str | None:
        return normalize_identity(value)


class TypingPayload(_Payload):
    sender_id: str | None = Field(default=None, alias="senderId")
    receiver_id: str = Field(..., alias="receiverId")

    @field_validator("sender_id", "receiver_id", mode="before")
    @classmethod
    def coerce_identity(cls, value: Any) -> str | None:
        return normalize_identity(value)


class CallUserPayload(_Payload):
    user_to_call: str = Field(..., alias="userToCall")
    signal_data: Any = Field(default=None, alias="signalData")
    from_: str | None = Field(default=None, alias="from")
    name: str | None = None

    @field_validator("user_to_call", "from_", mode="before")
    @classmethod
    def coerce_identity(cls, value: Any) -> str | None:
        return normalize_identity(value)


class AnswerCallPayload(_Payload):
    to: str
    signal: Any = None

    @field_validator("to", mode="before")
    @classmethod
    def coerce_identity(cls, value: Any) -> str | None:
        return normalize_identity(value)


class EndCallPayload(_Payload):
    to: str

    @field_validator("to", mode="before")
    @classmethod
    def coerce_identity(cls, value: Any) -> str | None:
        return normalize_identity(value)


class MessageEnvelope(BaseModel):
    """In-memory record of one chat message as forwarded to the receiver."""

    sender: str
    receiver: str
    content: str
    type: MessageType = MessageType.TEXT
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def identity_from_payload(data: Any, key: str = "userId") -> str | None:
    """Accept both a bare user id and ``{"userId": ...}`` payloads."""

    if isinstance(data, dict):
        return normalize_identity(data.get(key))
    return normalize_identity(data)


def parse_frame(raw: str) -> tuple[str, Any]:
    """Decode an inbound text frame into ``(event, data)``."""

    try:
        frame = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolError("Invalid payload") from exc
    if not isinstance(frame, dict):
        raise ProtocolError("Frame must be a JSON object")
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        raise ProtocolError("Frame must include an 'event' name")
    return event, frame.get("data")


def build_frame(event: str, data: Any = None) -> dict[str, Any]:
    return {"event": event, "data": data}
