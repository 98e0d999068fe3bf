"""
Configuration and settings for the wall service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(name: str, field_name: str) -> AliasChoices:
    return AliasChoices(name, field_name)


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible object storage for photos
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Change feed (Redis pub/sub)
    redis_url: Optional[str] = Field(default=None)
    redis_channel: str = Field(
        default="wall:posts_changes",
        validation_alias=_env("WALL_REDIS_CHANNEL", "redis_channel"),
    )

    session_secret: str = Field(
        default="dev-only-change-me",
        validation_alias=_env("WALL_SESSION_SECRET", "session_secret"),
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=_env(
            "WALL_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )
    log_level: str = Field(
        default="INFO", validation_alias=_env("WALL_LOG_LEVEL", "log_level")
    )

    # Wall behaviour
    feed_limit: int = Field(
        default=50, ge=1, validation_alias=_env("WALL_FEED_LIMIT", "feed_limit")
    )
    max_body_length: int = Field(
        default=280,
        ge=1,
        validation_alias=_env("WALL_MAX_BODY_LENGTH", "max_body_length"),
    )
    max_image_bytes: int = Field(
        default=5 * 1024 * 1024,
        validation_alias=_env("WALL_MAX_IMAGE_BYTES", "max_image_bytes"),
    )
    image_prefix: str = Field(
        default="posts", validation_alias=_env("WALL_IMAGE_PREFIX", "image_prefix")
    )
    image_cache_seconds: int = Field(
        default=3600,
        validation_alias=_env("WALL_IMAGE_CACHE_SECONDS", "image_cache_seconds"),
    )
    stream_keepalive_seconds: float = Field(
        default=15.0,
        validation_alias=_env(
            "WALL_STREAM_KEEPALIVE_SECONDS", "stream_keepalive_seconds"
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
