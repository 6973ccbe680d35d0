"""Application settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    """Settings loaded from the environment and an optional ``.env`` file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="local")
    database_url: str = Field(default="sqlite+aiosqlite:///./blog.db")
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Tokens
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    session_token_expire_minutes: int = Field(default=60 * 24)
    action_token_expire_minutes: int = Field(default=10)
    # Verification and reset links share one claim shape unless this is enabled.
    action_token_bind_purpose: bool = Field(default=False)

    # Media host
    minio_endpoint: str = Field(default="localhost:9000")
    minio_access_key: str = Field(default="minioadmin")
    minio_secret_key: str = Field(default="minioadmin")
    minio_bucket: str = Field(default="blog-media")
    minio_secure: bool = Field(default=False)
    media_public_base_url: str = Field(default="http://localhost:9000")
    media_folder: str = Field(default="blog")
    image_quality: int = Field(default=70, ge=1, le=95)

    # Upload limits, in bytes
    upload_max_bytes: int = Field(default=10 * 1024 * 1024)
    avatar_max_bytes: int = Field(default=500_000)
    thumbnail_max_bytes: int = Field(default=2_000_000)
    thumbnail_edit_max_bytes: int = Field(default=3_000_000)

    # Mail
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=587)
    smtp_username: str | None = Field(default=None)
    smtp_password: str | None = Field(default=None)
    smtp_timeout_seconds: float = Field(default=30.0)
    mail_from: str = Field(default="no-reply@localhost")
    frontend_url: str = Field(default="http://localhost:3000")

    post_count_mode: Literal["counter", "derived"] = Field(default="counter")

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        if self.is_production and self.jwt_secret == DEFAULT_JWT_SECRET:  # noqa: S105
            raise ValueError("JWT_SECRET must be changed in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"


settings = Settings()
