from __future__ import annotations

from enum import Enum

from linkup.realtime.protocol import MessageType

__all__ = ["ConnectionStatus", "MessageType", "NotificationType"]


class NotificationType(str, Enum):
    """Reasons a user can be notified."""

    LIKE = "like"
    COMMENT = "comment"
    SHARE = "share"
    MENTION = "mention"
    CONNECTION_REQUEST = "connection_request"
    CONNECTION_ACCEPTED = "connection_accepted"
    MESSAGE = "message"
    JOB_APPLICATION = "job_application"
    JOB_UPDATE = "job_update"
    COMPANY_FOLLOW = "company_follow"
    POST_MENTION = "post_mention"


class ConnectionStatus(str, Enum):
    """Lifecycle states of a connection between two members."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
