"""Presence tracking and realtime event delivery over websockets."""

from .connection import Connection, ConnectionPool, safe_send_json  # noqa: F401
from .delivery import DeliveryPolicy  # noqa: F401
from .hub import RealtimeHub  # noqa: F401
from .protocol import MessageEnvelope, MessageType  # noqa: F401
from .registry import ConnectionRegistry, Registration  # noqa: F401
from .rooms import RoomRegistry  # noqa: F401
from .router import EventRouter, MessageStore  # noqa: F401

__all__ = [
    "Connection",
    "ConnectionPool",
    "ConnectionRegistry",
    "DeliveryPolicy",
    "EventRouter",
    "MessageEnvelope",
    "MessageStore",
    "MessageType",
    "RealtimeHub",
    "Registration",
    "RoomRegistry",
    "safe_send_json",
]
