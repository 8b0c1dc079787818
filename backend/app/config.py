from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import AliasChoices, AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Linkup API", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=True, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
            "http://127.0.0.1:5173",
        ],
        description="List of allowed CORS origins",
    )
    cors_allow_origin_regex: str | None = Field(
        default=r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$",
        description="Optional regular expression that matches allowed CORS origins",
    )

    database_user: str = Field(default="linkup", validation_alias=AliasChoices("DB_USER", "database_user"))
    database_password: str = Field(
        default="linkup", validation_alias=AliasChoices("DB_PASSWORD", "database_password")
    )
    database_host: str = Field(default="db", validation_alias=AliasChoices("DB_HOST", "database_host"))
    database_port: int = Field(default=3306, validation_alias=AliasChoices("DB_PORT", "database_port"))
    database_name: str = Field(default="linkup", validation_alias=AliasChoices("DB_NAME", "database_name"))
    database_pool_size: int = Field(
        default=10, validation_alias=AliasChoices("DB_POOL_SIZE", "database_pool_size")
    )
    database_max_overflow: int = Field(
        default=20, validation_alias=AliasChoices("DB_MAX_OVERFLOW", "database_max_overflow")
    )
    database_echo: bool = Field(
        default=False,
        validation_alias=AliasChoices("DB_ECHO", "database_echo"),
        description="Log every SQL statement",
    )

    jwt_secret_key: str = Field(default="changeme")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7)

    chat_history_default_limit: int = Field(default=50)
    chat_history_max_limit: int = Field(default=100)
    chat_message_max_length: int = Field(default=1000)

    websocket_keepalive_timeout_seconds: float = Field(
        default=25.0,
        description="Idle time after which the server sends the client a ping event.",
    )
    websocket_keepalive_ping_interval_seconds: float = Field(
        default=25.0,
        description="Minimum spacing between consecutive keepalive pings.",
    )
    realtime_require_auth: bool = Field(
        default=True,
        description="Reject websocket connections that do not present a bearer token.",
    )
    realtime_persist_socket_messages: bool = Field(
        default=False,
        description="Store messages sent over the websocket before forwarding them.",
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def database_url(self) -> str:
        return (
            f"mysql+pymysql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
