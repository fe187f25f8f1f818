from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Huddle API", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
        ],
        description="List of allowed CORS origins",
    )
    cors_allow_origin_regex: str | None = Field(
        default=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        description="Optional regular expression that matches allowed CORS origins",
    )

    database_url: str = Field(default="sqlite:///./huddle.db", description="SQLAlchemy database URL")
    database_echo: bool = Field(default=False, description="Log emitted SQL statements")
    database_create_tables: bool = Field(
        default=True, description="Create missing tables on startup"
    )

    jwt_secret_key: str = Field(default="changeme")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24)
    auth_cookie_name: str = Field(default="jwt", description="Cookie carrying the access token")
    auth_token_url: str = Field(
        default="/auth/token",
        description="Token endpoint of the external identity provider, advertised in the OpenAPI schema",
    )

    chat_history_default_limit: int = Field(default=50)
    chat_history_max_limit: int = Field(default=100)
    chat_message_max_length: int = Field(default=5000)

    websocket_keepalive_timeout_seconds: float = Field(
        default=30.0,
        description="Idle time after which the server considers sending a keepalive ping.",
    )
    websocket_keepalive_ping_interval_seconds: float = Field(
        default=25.0,
        description="Minimum spacing between consecutive keepalive pings.",
    )

    media_root: Path = Field(default=Path("uploads"))
    media_base_url: str = Field(default="/media")
    max_upload_size: int = Field(
        default=5 * 1024 * 1024, description="Maximum upload size in bytes"
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
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

    @field_validator("media_root", mode="before")
    @classmethod
    def resolve_media_root(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value.resolve()
        return Path(value).resolve()


@lru_cache
def get_settings() -> Settings:
    return Settings()
