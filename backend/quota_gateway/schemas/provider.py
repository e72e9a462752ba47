"""Schemas for the key-protected provider endpoints."""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def isoformat_utc(moment: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with millisecond precision."""

    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class UsageInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    count: int = Field(..., description="Requests consumed in the current window")
    reset_at: str = Field(..., alias="resetAt", description="ISO-8601 window expiry")


class ProviderDataResponse(BaseModel):
    message: str
    key_used: str
    usage: UsageInfo
    value: int = Field(..., description="Backend payload")


class ErrorResponse(BaseModel):
    error: str
    detail: str


class QuotaExceededResponse(BaseModel):
    error: str
    key: str
    allowed_per_day: int
    reset_at: str
