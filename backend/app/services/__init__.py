"""Application service helpers."""

from .message_store import SqlMessageStore
from .notifications import (
    connection_accepted_notification,
    connection_request_notification,
    create_notification,
    message_notification,
    publish_notification,
)

__all__ = [
    "SqlMessageStore",
    "connection_accepted_notification",
    "connection_request_notification",
    "create_notification",
    "message_notification",
    "publish_notification",
]
