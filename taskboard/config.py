"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"

MEBIBYTE = 1024 * 1024


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    secret_key: str = Field(
        description="Secret key for signing JWT tokens", min_length=1
    )
    access_token_expire_minutes: int = Field(
        description="Number of minutes before access tokens expire",
        gt=0,
    )
    app_timezone: str | None = Field(
        default=None,
        description="IANA timezone name (or UTC offset) used for stored timestamps",
    )
    upload_max_bytes: int = Field(
        default=20 * MEBIBYTE,
        description="Largest accepted size, in bytes, for a single uploaded file",
        gt=0,
    )
    upload_chunk_size_bytes: int = Field(
        default=255 * 1024,
        description="Size of the chunks the file store splits uploads into",
        gt=0,
    )
    upload_batch_concurrency: int = Field(
        default=4,
        description="Maximum number of files of one batch request stored in parallel",
        ge=1,
    )
    orphan_grace_period_seconds: int = Field(
        default=3600,
        description="Age a stored file must reach before the sweep may reclaim it",
        ge=0,
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to call the API from a browser",
    )
    debug: bool = Field(
        default=False,
        description="Expose internal error messages in API responses",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @model_validator(mode="after")
    def _validate_chunk_size(self) -> "Settings":
        if self.upload_chunk_size_bytes > self.upload_max_bytes:
            raise ValueError(
                "UPLOAD_CHUNK_SIZE_BYTES cannot be larger than UPLOAD_MAX_BYTES"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
