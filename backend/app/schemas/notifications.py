"""Schemas for the notification feed."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from app.models.enums import NotificationType
from app.schemas.auth import UserSummary


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient_id: int
    sender_id: int | None = None
    sender: UserSummary | None = None
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None = None
    action_url: str | None = None
    read: bool = False
    read_at: datetime | None = None
    created_at: datetime


class NotificationsMarked(BaseModel):
    updated: int
