"""Notification feed endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_current_user
from app.config import get_settings
from app.database import get_db
from app.models import Notification, User
from app.schemas import NotificationRead, NotificationsMarked

router = APIRouter(prefix="/notifications", tags=["notifications"])

settings = get_settings()


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Notification]:
    page_size = min(limit or settings.chat_history_default_limit, settings.chat_history_max_limit)
    conditions = [Notification.recipient_id == current_user.id]
    if unread_only:
        conditions.append(Notification.read.is_(False))
    stmt = (
        select(Notification)
        .where(*conditions)
        .options(selectinload(Notification.sender))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(page_size)
    )
    return list(db.execute(stmt).scalars())


@router.put("/read-all", response_model=NotificationsMarked)
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> NotificationsMarked:
    result = db.execute(
        update(Notification)
        .where(Notification.recipient_id == current_user.id, Notification.read.is_(False))
        .values(read=True, read_at=datetime.now(timezone.utc))
    )
    db.commit()
    return NotificationsMarked(updated=result.rowcount or 0)


@router.put("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.recipient_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if notification.mark_read():
        db.commit()
        db.refresh(notification)
    return notification
