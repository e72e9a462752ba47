"""Application-wide settings for the key quota gateway."""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Usage windows always span one day; only the per-window limit is tunable.
WINDOW_DURATION = timedelta(hours=24)


class Settings(BaseSettings):
    """Global application configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    log_level: str = Field(default="INFO")

    daily_limit: int = Field(default=3, gt=0, description="Requests allowed per key per window")
    # Empty secret disables the admin endpoints entirely
    admin_secret: str = Field(default="")

    # Key registry sources: inline JSON array wins over the file
    provider_keys: Optional[str] = Field(
        default=None, description="JSON array of valid provider keys"
    )
    provider_keys_file: str = Field(default="keys.json")

    provider_key_header: str = Field(default="X-Provider-Key")
    provider_key_query_param: str = Field(default="key")
    admin_secret_header: str = Field(default="X-Admin-Secret")

    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    # JSONL request audit trail (disabled when unset)
    audit_log_store_path: Optional[str] = Field(default=None)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "WINDOW_DURATION", "get_settings"]
