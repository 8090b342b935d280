"""
Configuration and settings for the gallery backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=10000)
    cors_origin: str = Field(default="*")
    log_level: str = Field(default="INFO")

    # Database (any SQLAlchemy URL)
    database_url: Optional[str] = Field(default=None)

    # Shared secret for mutating routes; empty disables the check.
    mv_api_key: str = Field(default="")

    # Cloudinary media host
    cloudinary_cloud_name: Optional[str] = Field(default=None)
    cloudinary_api_key: Optional[str] = Field(default=None)
    cloudinary_api_secret: Optional[str] = Field(default=None)
    media_root_folder: str = Field(default="mess_verse")

    max_upload_bytes: int = Field(default=10 * 1024 * 1024)

    # Fixed-window limiter for mutating routes
    rate_limit_max: int = Field(default=30, ge=1)
    rate_limit_window_seconds: int = Field(default=60, ge=1)
    rate_limit_max_buckets: int = Field(default=10_000, ge=1)
    trust_forwarded_for: bool = Field(default=False)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @property
    def api_key(self) -> str:
        return self.mv_api_key.strip()

    @property
    def api_key_enabled(self) -> bool:
        return bool(self.api_key)

    @property
    def cors_origins(self) -> list[str]:
        value = self.cors_origin.strip()
        if value == "*":
            return ["*"]
        return [origin.strip() for origin in value.split(",") if origin.strip()]

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
