from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import ConnectionStatus, MessageType, NotificationType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Member profile."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    headline: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    summary: Mapped[str] = mapped_column(Text, default="", nullable=False)
    location: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    industry: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    profile_picture: Mapped[str | None] = mapped_column(String(512))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    sent_messages: Mapped[list["Message"]] = relationship(
        back_populates="sender", foreign_keys="Message.sender_id"
    )
    received_messages: Mapped[list["Message"]] = relationship(
        back_populates="receiver", foreign_keys="Message.receiver_id"
    )
    notifications: Mapped[list["Notification"]] = relationship(
        back_populates="recipient",
        foreign_keys="Notification.recipient_id",
        cascade="all, delete-orphan",
    )
    sent_connection_requests: Mapped[list["UserConnection"]] = relationship(
        back_populates="requester", foreign_keys="UserConnection.requester_id", cascade="all, delete-orphan"
    )
    received_connection_requests: Mapped[list["UserConnection"]] = relationship(
        back_populates="addressee", foreign_keys="UserConnection.addressee_id", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Message(Base):
    """Direct message between two members."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_pair_created_at", "sender_id", "receiver_id", "created_at"),
        Index("ix_messages_receiver_read", "receiver_id", "read"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[MessageType] = mapped_column(
        SAEnum(
            MessageType,
            name="message_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        default=MessageType.TEXT,
        nullable=False,
    )
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reply_to_id: Mapped[int | None] = mapped_column(ForeignKey("messages.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    sender: Mapped[User] = relationship(back_populates="sent_messages", foreign_keys=[sender_id])
    receiver: Mapped[User] = relationship(back_populates="received_messages", foreign_keys=[receiver_id])
    reply_to: Mapped["Message | None"] = relationship(remote_side="Message.id")

    def mark_read(self) -> bool:
        if self.read:
            return False
        self.read = True
        self.read_at = _utcnow()
        return True

    def edit_content(self, content: str) -> None:
        self.content = content
        self.edited = True
        self.edited_at = _utcnow()

    def soft_delete(self) -> None:
        self.deleted = True
        self.deleted_at = _utcnow()


class Notification(Base):
    """Persisted notification shown in the member's notification feed."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read_created", "recipient_id", "read", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    recipient_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    sender_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    type: Mapped[NotificationType] = mapped_column(
        SAEnum(
            NotificationType,
            name="notification_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False)
    data: Mapped[dict | None] = mapped_column(JSON)
    action_url: Mapped[str | None] = mapped_column(String(512))
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    recipient: Mapped[User] = relationship(back_populates="notifications", foreign_keys=[recipient_id])
    sender: Mapped[User | None] = relationship(foreign_keys=[sender_id])

    def mark_read(self) -> bool:
        if self.read:
            return False
        self.read = True
        self.read_at = _utcnow()
        return True


class UserConnection(Base):
    """Connection between two members, initiated by ``requester``."""

    __tablename__ = "user_connections"
    __table_args__ = (
        UniqueConstraint("requester_id", "addressee_id", name="uq_user_connection_pair"),
        Index("ix_user_connections_addressee_status", "addressee_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    requester_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    addressee_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[ConnectionStatus] = mapped_column(
        SAEnum(
            ConnectionStatus,
            name="connection_status",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        default=ConnectionStatus.PENDING,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    requester: Mapped[User] = relationship(
        back_populates="sent_connection_requests", foreign_keys=[requester_id]
    )
    addressee: Mapped[User] = relationship(
        back_populates="received_connection_requests", foreign_keys=[addressee_id]
    )

    def other_party(self, user_id: int) -> User:
        return self.addressee if self.requester_id == user_id else self.requester

    def respond(self, status: ConnectionStatus) -> None:
        self.status = status
        self.responded_at = _utcnow()
