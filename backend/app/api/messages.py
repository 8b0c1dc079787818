"""HTTP endpoints for direct messages."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_current_user, get_hub, get_user_or_404
from app.config import get_settings
from app.database import get_db
from app.models import Message, User
from app.schemas import ConversationSummary, MessageCreate, MessageRead, MessageUpdate, UserSummary
from app.services import message_notification, publish_notification
from linkup.realtime import RealtimeHub
from linkup.realtime import protocol

router = APIRouter(prefix="/messages", tags=["messages"])

settings = get_settings()


def _get_message(message_id: int, db: Session) -> Message:
    stmt = (
        select(Message)
        .where(Message.id == message_id, Message.deleted.is_(False))
        .options(selectinload(Message.sender), selectinload(Message.receiver))
    )
    message = db.execute(stmt).scalar_one_or_none()
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return message


def _ensure_length(content: str) -> None:
    if len(content) > settings.chat_message_max_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Message exceeds maximum length of {settings.chat_message_max_length} characters",
        )


def _wire_envelope(message: Message) -> dict:
    """Shape a stored message like the envelope the websocket forwards."""

    return {
        "id": message.id,
        "sender": str(message.sender_id),
        "receiver": str(message.receiver_id),
        "content": message.content,
        "type": message.type.value,
        "timestamp": message.created_at.isoformat(),
    }


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def create_message(
    payload: MessageCreate,
    db: Session = Depends(get_db),
    hub: RealtimeHub | None = Depends(get_hub),
    current_user: User = Depends(get_current_user),
) -> MessageRead:
    """Store a message, then notify the receiver if they are online."""

    _ensure_length(payload.content)
    if payload.receiver_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot message yourself")
    get_user_or_404(payload.receiver_id, db)

    if payload.reply_to_id is not None:
        parent = _get_message(payload.reply_to_id, db)
        if current_user.id not in (parent.sender_id, parent.receiver_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")

    message = Message(
        sender_id=current_user.id,
        receiver_id=payload.receiver_id,
        content=payload.content,
        type=payload.type,
        reply_to_id=payload.reply_to_id,
    )
    db.add(message)
    db.flush()
    notification = message_notification(
        db,
        sender=current_user,
        recipient_id=payload.receiver_id,
        message_id=message.id,
        preview=payload.content[:120],
    )
    db.commit()
    message = _get_message(message.id, db)

    if hub is not None:
        await hub.notify_user(message.receiver_id, protocol.RECEIVE_MESSAGE, _wire_envelope(message))
        await publish_notification(hub, notification)
    return MessageRead.model_validate(message)


@router.get("/conversations", response_model=list[ConversationSummary])
async def list_conversations(
    db: Session = Depends(get_db),
    hub: RealtimeHub | None = Depends(get_hub),
    current_user: User = Depends(get_current_user),
) -> list[ConversationSummary]:
    """Latest message per counterpart, newest conversation first."""

    stmt = (
        select(Message)
        .where(
            Message.deleted.is_(False),
            or_(Message.sender_id == current_user.id, Message.receiver_id == current_user.id),
        )
        .options(selectinload(Message.sender), selectinload(Message.receiver))
        .order_by(Message.created_at.desc(), Message.id.desc())
    )
    latest: dict[int, Message] = {}
    for message in db.execute(stmt).scalars():
        other_id = message.receiver_id if message.sender_id == current_user.id else message.sender_id
        latest.setdefault(other_id, message)

    unread_stmt = (
        select(Message.sender_id, func.count(Message.id))
        .where(
            Message.receiver_id == current_user.id,
            Message.read.is_(False),
            Message.deleted.is_(False),
        )
        .group_by(Message.sender_id)
    )
    unread = {sender_id: count for sender_id, count in db.execute(unread_stmt).all()}

    summaries: list[ConversationSummary] = []
    for other_id, message in latest.items():
        other = message.receiver if message.sender_id == current_user.id else message.sender
        summaries.append(
            ConversationSummary(
                user=UserSummary.model_validate(other),
                last_message=MessageRead.model_validate(message),
                unread_count=unread.get(other_id, 0),
                online=await hub.is_online(other_id) if hub is not None else False,
            )
        )
    return summaries


@router.get("/conversation/{user_id}", response_model=list[MessageRead])
def read_conversation(
    user_id: int,
    limit: int | None = Query(default=None, ge=1),
    before: datetime | None = Query(default=None, description="Only messages created before this time"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[MessageRead]:
    """Messages exchanged with ``user_id``, oldest first."""

    get_user_or_404(user_id, db)
    page_size = min(limit or settings.chat_history_default_limit, settings.chat_history_max_limit)
    conditions = [
        Message.deleted.is_(False),
        or_(
            and_(Message.sender_id == current_user.id, Message.receiver_id == user_id),
            and_(Message.sender_id == user_id, Message.receiver_id == current_user.id),
        ),
    ]
    if before is not None:
        conditions.append(Message.created_at < before)
    stmt = (
        select(Message)
        .where(*conditions)
        .options(selectinload(Message.sender), selectinload(Message.receiver))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(page_size)
    )
    messages = list(db.execute(stmt).scalars())
    messages.reverse()
    return [MessageRead.model_validate(message) for message in messages]


@router.put("/{message_id}/read", response_model=MessageRead)
async def mark_message_read(
    message_id: int,
    db: Session = Depends(get_db),
    hub: RealtimeHub | None = Depends(get_hub),
    current_user: User = Depends(get_current_user),
) -> MessageRead:
    message = _get_message(message_id, db)
    if message.receiver_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the receiver can mark a message read")
    if message.mark_read():
        db.commit()
        db.refresh(message)
        if hub is not None:
            await hub.notify_user(
                message.sender_id,
                protocol.MESSAGE_READ,
                {"messageId": message.id, "readAt": message.read_at.isoformat() if message.read_at else None},
            )
    return MessageRead.model_validate(message)


@router.put("/{message_id}", response_model=MessageRead)
def edit_message(
    message_id: int,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageRead:
    _ensure_length(payload.content)
    message = _get_message(message_id, db)
    if message.sender_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the sender can edit a message")
    message.edit_content(payload.content)
    db.commit()
    db.refresh(message)
    return MessageRead.model_validate(message)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    message = _get_message(message_id, db)
    if message.sender_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the sender can delete a message")
    message.soft_delete()
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
