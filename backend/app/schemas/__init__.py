"""Pydantic schemas for API payloads."""

from .auth import LoginRequest, OnlineUsers, Token, UserCreate, UserProfile, UserRead, UserSummary
from .messages import ConversationSummary, MessageCreate, MessageRead, MessageUpdate
from .notifications import NotificationRead, NotificationsMarked
from .users import ConnectionPage, ConnectionRead, Pagination, ProfileUpdate, SearchResult, UserSearchPage

__all__ = [
    "LoginRequest",
    "OnlineUsers",
    "Token",
    "UserCreate",
    "UserProfile",
    "UserRead",
    "UserSummary",
    "ConversationSummary",
    "MessageCreate",
    "MessageRead",
    "MessageUpdate",
    "NotificationRead",
    "NotificationsMarked",
    "ConnectionPage",
    "ConnectionRead",
    "Pagination",
    "ProfileUpdate",
    "SearchResult",
    "UserSearchPage",
]
