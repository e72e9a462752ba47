"""Schemas for admin endpoints."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class ResetResponse(BaseModel):
    message: str
    reset_at: str = Field(..., description="ISO-8601 time of the reset")
    keys_reset: int


class KeyUsageItem(BaseModel):
    key: str = Field(..., description="Masked provider key")
    count: int
    limit: int
    reset_at: str | None = None


class UsageReportResponse(BaseModel):
    keys: List[KeyUsageItem]
    total: int


class KeyLookupRequest(BaseModel):
    key: str = Field(..., min_length=1, description="Provider key to inspect")


class AuditLogItem(BaseModel):
    request_id: str
    method: str
    path: str
    status_code: int
    actor: str
    key_prefix: str | None = None
    verdict: str | None = None
    remaining: int | None = None
    duration_ms: float
    ip: str | None = None
    created_at: str


class AuditLogListResponse(BaseModel):
    items: List[AuditLogItem]
    total: int
