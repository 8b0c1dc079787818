"""Schemas for profile editing, member search and connections."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, constr

from app.models.enums import ConnectionStatus
from app.schemas.auth import UserSummary


class ProfileUpdate(BaseModel):
    """Partial update of the current member's profile; omitted fields are kept."""

    first_name: constr(strip_whitespace=True, min_length=1, max_length=50) | None = None
    last_name: constr(strip_whitespace=True, min_length=1, max_length=50) | None = None
    headline: constr(strip_whitespace=True, max_length=120) | None = None
    summary: constr(strip_whitespace=True, max_length=2000) | None = None
    location: constr(strip_whitespace=True, max_length=100) | None = None
    industry: constr(strip_whitespace=True, max_length=100) | None = None
    profile_picture: constr(strip_whitespace=True, max_length=512) | None = None


class SearchResult(UserSummary):
    location: str = ""
    industry: str = ""


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class UserSearchPage(BaseModel):
    """One page of members matching a search query."""

    users: list[SearchResult] = Field(default_factory=list)
    pagination: Pagination


class ConnectionRead(BaseModel):
    """A connection seen from the current member's side."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user: UserSummary
    status: ConnectionStatus
    direction: Literal["incoming", "outgoing"]
    created_at: datetime
    responded_at: datetime | None = None


class ConnectionPage(BaseModel):
    connections: list[ConnectionRead] = Field(default_factory=list)
    pagination: Pagination
