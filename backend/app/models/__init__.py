"""Database models package."""

from .base import Base
from .enums import ConnectionStatus, MessageType, NotificationType
from .social import Message, Notification, User, UserConnection

__all__ = [
    "Base",
    "User",
    "UserConnection",
    "Message",
    "Notification",
    "ConnectionStatus",
    "MessageType",
    "NotificationType",
]
