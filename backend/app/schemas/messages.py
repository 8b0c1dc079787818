"""Schemas related to direct messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import MessageType
from app.schemas.auth import UserSummary


class MessageCreate(BaseModel):
    """Payload for sending a message over HTTP."""

    receiver_id: int = Field(..., description="Recipient user id")
    content: str = Field(..., min_length=1, description="Message body")
    type: MessageType = Field(default=MessageType.TEXT)
    reply_to_id: int | None = Field(default=None, description="Message this one replies to")


class MessageUpdate(BaseModel):
    """Payload for editing a message."""

    content: str = Field(..., min_length=1)


class MessageRead(BaseModel):
    """Serialized representation of a direct message."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    sender: UserSummary | None = None
    receiver: UserSummary | None = None
    content: str
    type: MessageType
    read: bool = False
    read_at: datetime | None = None
    edited: bool = False
    edited_at: datetime | None = None
    reply_to_id: int | None = None
    created_at: datetime


class ConversationSummary(BaseModel):
    """Latest message exchanged with one counterpart."""

    user: UserSummary
    last_message: MessageRead
    unread_count: int = Field(0, ge=0)
    online: bool = False
