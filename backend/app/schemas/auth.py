"""Schemas for authentication and profile endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$"


class UserBase(BaseModel):
    """Base fields shared across user schemas."""

    first_name: constr(strip_whitespace=True, min_length=1, max_length=50) = Field(
        ..., description="Given name"
    )
    last_name: constr(strip_whitespace=True, min_length=1, max_length=50) = Field(
        ..., description="Family name"
    )
    headline: constr(strip_whitespace=True, max_length=120) = Field(
        default="", description="Short professional headline shown under the name"
    )
    location: constr(strip_whitespace=True, max_length=100) = Field(default="")


class UserCreate(UserBase):
    """Payload for creating a new user via registration."""

    email: constr(strip_whitespace=True, pattern=EMAIL_PATTERN, max_length=255) = Field(
        ..., description="Unique email address used to sign in"
    )
    password: constr(min_length=6, max_length=128) = Field(
        ..., description="Plain text password that will be hashed before storing"
    )

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class UserRead(UserBase):
    """Representation of a user returned from the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    summary: str = ""
    industry: str = ""
    profile_picture: str | None = None
    created_at: datetime
    updated_at: datetime


class UserSummary(BaseModel):
    """Compact public profile used inside other payloads."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    headline: str = ""
    profile_picture: str | None = None


class UserProfile(UserSummary):
    """Public profile including presence."""

    summary: str = ""
    location: str = ""
    industry: str = ""
    connections_count: int = 0
    online: bool = False


class OnlineUsers(BaseModel):
    """Identities currently registered in the realtime hub."""

    user_ids: list[str] = Field(default_factory=list)
    users: list[UserSummary] = Field(default_factory=list)


class LoginRequest(BaseModel):
    """Payload for user login."""

    email: constr(strip_whitespace=True, min_length=3, max_length=255) = Field(..., description="User email")
    password: constr(min_length=1, max_length=128) = Field(..., description="User password")


class Token(BaseModel):
    """Access token returned after successful authentication."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
    expires_in: int | None = Field(
        default=None,
        description="Number of seconds until the access token expires",
    )
