"""
Configuration and settings for the video platform backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Development-only signing keys; a configured database requires real ones.
DEV_ACCESS_TOKEN_SECRET = "dev-only-access-token-secret-not-for-production"
DEV_REFRESH_TOKEN_SECRET = "dev-only-refresh-token-secret-not-for-production"
MIN_SECRET_BYTES = 32


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api/v1")

    # Server
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=8000, env="PORT")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    cors_origin: str = Field(default="*", env="CORS_ORIGIN")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # JWT sessions
    access_token_secret: str = Field(
        default=DEV_ACCESS_TOKEN_SECRET, env="ACCESS_TOKEN_SECRET"
    )
    access_token_expiry_minutes: int = Field(
        default=60 * 24, env="ACCESS_TOKEN_EXPIRY_MINUTES"
    )
    refresh_token_secret: str = Field(
        default=DEV_REFRESH_TOKEN_SECRET, env="REFRESH_TOKEN_SECRET"
    )
    refresh_token_expiry_minutes: int = Field(
        default=60 * 24 * 10, env="REFRESH_TOKEN_EXPIRY_MINUTES"
    )
    cookie_secure: bool = Field(default=True, env="COOKIE_SECURE")

    # S3-compatible asset host
    asset_bucket: Optional[str] = Field(default=None, env="ASSET_BUCKET")
    asset_endpoint: Optional[str] = Field(default=None, env="ASSET_ENDPOINT")
    asset_region: Optional[str] = Field(default=None, env="ASSET_REGION")
    asset_public_base_url: Optional[str] = Field(
        default=None, env="ASSET_PUBLIC_BASE_URL"
    )
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )
    max_upload_bytes: int = Field(
        default=100 * 1024 * 1024, env="MAX_UPLOAD_BYTES"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )

    @model_validator(mode="after")
    def _require_signing_secrets(self) -> "Settings":
        if self.database_url and not self.use_in_memory_backends:
            if (
                self.access_token_secret == DEV_ACCESS_TOKEN_SECRET
                or self.refresh_token_secret == DEV_REFRESH_TOKEN_SECRET
            ):
                raise ValueError(
                    "ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must be set "
                    "when DATABASE_URL is configured"
                )
            for name in ("access_token_secret", "refresh_token_secret"):
                if len(getattr(self, name).encode()) < MIN_SECRET_BYTES:
                    raise ValueError(
                        f"{name.upper()} must be at least {MIN_SECRET_BYTES} bytes"
                    )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
