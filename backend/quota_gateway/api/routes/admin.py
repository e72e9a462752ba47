"""Admin endpoints for quota control (requires the admin secret header)."""
from __future__ import annotations

import asyncio
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from quota_gateway.core.config import Settings
from quota_gateway.deps import get_app_settings, get_audit_logger, get_now, get_rate_limiter
from quota_gateway.schemas.admin import (
    AuditLogItem,
    AuditLogListResponse,
    KeyLookupRequest,
    KeyUsageItem,
    ResetResponse,
    UsageReportResponse,
)
from quota_gateway.schemas.provider import ErrorResponse, isoformat_utc
from quota_gateway.security import GatewayRejection, require_admin_secret
from quota_gateway.services.rate_limit import KeyUsage, RateLimiter


router = APIRouter(prefix="/admin", tags=["admin"])

_FORBIDDEN = {403: {"model": ErrorResponse, "description": "Admin secret missing or invalid"}}


def _usage_item(usage: KeyUsage) -> KeyUsageItem:
    return KeyUsageItem(
        key=usage.key,
        count=usage.count,
        limit=usage.limit,
        reset_at=isoformat_utc(usage.reset_at) if usage.reset_at else None,
    )


@router.post(
    "/reset",
    response_model=ResetResponse,
    responses=_FORBIDDEN,
    summary="Reset usage windows for every key",
)
async def reset_all_limits(
    _: dict = Depends(require_admin_secret),
    limiter: RateLimiter = Depends(get_rate_limiter),
    now: datetime = Depends(get_now),
) -> ResetResponse:
    total = limiter.reset_all(now)
    return ResetResponse(
        message="All key limits reset successfully",
        reset_at=isoformat_utc(now),
        keys_reset=total,
    )


@router.get(
    "/usage",
    response_model=UsageReportResponse,
    responses=_FORBIDDEN,
    summary="List current usage per key",
)
async def list_usage(
    _: dict = Depends(require_admin_secret),
    limiter: RateLimiter = Depends(get_rate_limiter),
    now: datetime = Depends(get_now),
) -> UsageReportResponse:
    items = [_usage_item(u) for u in limiter.usage_report(now)]
    return UsageReportResponse(keys=items, total=len(items))


@router.post(
    "/usage/lookup",
    response_model=KeyUsageItem,
    responses={
        **_FORBIDDEN,
        404: {"model": ErrorResponse, "description": "Key not in the registry"},
    },
    summary="Inspect one key without consuming quota",
)
async def lookup_usage(
    body: KeyLookupRequest,
    _: dict = Depends(require_admin_secret),
    limiter: RateLimiter = Depends(get_rate_limiter),
    now: datetime = Depends(get_now),
) -> KeyUsageItem:
    # Key travels in the body so it stays out of access logs
    usage = limiter.snapshot(body.key, now)
    if usage is None:
        raise GatewayRejection(
            status.HTTP_404_NOT_FOUND,
            {"error": "Not found", "detail": "Key not recognized"},
        )
    return _usage_item(usage)


@router.get(
    "/audit-logs",
    response_model=AuditLogListResponse,
    responses=_FORBIDDEN,
    summary="List the most recent audit records",
)
async def list_audit_logs(
    limit: int = Query(50, ge=1, le=200),
    _: dict = Depends(require_admin_secret),
    settings: Settings = Depends(get_app_settings),
) -> AuditLogListResponse:
    audit_logger = get_audit_logger(settings)
    records = await asyncio.to_thread(audit_logger.tail, limit) if audit_logger is not None else []
    items = [AuditLogItem(**asdict(record)) for record in records]
    return AuditLogListResponse(items=items, total=len(items))
