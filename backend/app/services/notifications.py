"""Persist notifications and fan them out to the recipient's notification room."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.models import Notification, NotificationType, User
from app.schemas import NotificationRead
from linkup.realtime import RealtimeHub

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    *,
    recipient_id: int,
    type: NotificationType,
    title: str,
    message: str,
    sender_id: int | None = None,
    data: dict[str, Any] | None = None,
    action_url: str | None = None,
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=type,
        title=title[:100],
        message=message[:500],
        data=data,
        action_url=action_url,
    )
    db.add(notification)
    db.flush()
    return notification


async def publish_notification(hub: RealtimeHub | None, notification: Notification) -> int:
    """Multicast a stored notification; returns the number of sockets reached."""

    if hub is None:
        return 0
    payload = NotificationRead.model_validate(notification).model_dump(mode="json")
    delivered = await hub.push_notification(notification.recipient_id, payload)
    logger.debug(
        "Notification %s pushed to %d connection(s) of user %s",
        notification.id,
        delivered,
        notification.recipient_id,
    )
    return delivered


def message_notification(db: Session, *, sender: User, recipient_id: int, message_id: int, preview: str) -> Notification:
    return create_notification(
        db,
        recipient_id=recipient_id,
        sender_id=sender.id,
        type=NotificationType.MESSAGE,
        title=f"New message from {sender.full_name}",
        message=preview,
        data={"messageId": message_id},
        action_url=f"/messages/{sender.id}",
    )


def connection_request_notification(db: Session, *, sender: User, recipient_id: int) -> Notification:
    return create_notification(
        db,
        recipient_id=recipient_id,
        sender_id=sender.id,
        type=NotificationType.CONNECTION_REQUEST,
        title="New connection request",
        message=f"{sender.full_name} wants to connect with you",
        data={"userId": sender.id},
        action_url=f"/profile/{sender.id}",
    )


def connection_accepted_notification(db: Session, *, sender: User, recipient_id: int) -> Notification:
    return create_notification(
        db,
        recipient_id=recipient_id,
        sender_id=sender.id,
        type=NotificationType.CONNECTION_ACCEPTED,
        title="Connection accepted",
        message=f"{sender.full_name} accepted your connection request",
        data={"userId": sender.id},
        action_url=f"/profile/{sender.id}",
    )
