"""
Configuration and settings for the vision board service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Hosted auth (Supabase GoTrue REST API)
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    backend_timeout_seconds: float = Field(default=25.0)

    # Database (Postgres expected; any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible object storage
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: str = Field(default="vision-boards")
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    signed_url_ttl_seconds: int = Field(default=3600, ge=60, le=604800)

    # Account boards must have every slot filled before save/export.
    require_full_grid: bool = Field(default=True)

    # Demo mode local store (Redis)
    redis_url: Optional[str] = Field(default=None)
    demo_redis_prefix: str = Field(default="visionboard:demo")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "VISIONBOARD_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # HTTP surface
    session_cookie_name: str = Field(default="visionboard-access-token")
    oauth_verifier_cookie_name: str = Field(default="visionboard-code-verifier")
    demo_cookie_name: str = Field(default="visionboard-demo-profile")
    login_path: str = Field(default="/login")
    dashboard_path: str = Field(default="/dashboard")

    log_level: str = Field(default="INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
