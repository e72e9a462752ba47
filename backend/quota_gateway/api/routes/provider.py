"""Key-protected provider endpoints (header and query variants)."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from quota_gateway.deps import get_backend_payload
from quota_gateway.schemas.provider import (
    ErrorResponse,
    ProviderDataResponse,
    QuotaExceededResponse,
    UsageInfo,
    isoformat_utc,
)
from quota_gateway.security import KeySource, require_provider_key
from quota_gateway.services.keys import mask_key
from quota_gateway.services.rate_limit import Verdict


logger = logging.getLogger(__name__)

router = APIRouter(tags=["provider"])

_REJECTIONS = {
    401: {"model": ErrorResponse, "description": "Missing or invalid key"},
    429: {"model": QuotaExceededResponse, "description": "Daily quota exceeded"},
}


def _build_response(verdict: Verdict, message: str, payload: dict[str, Any]) -> ProviderDataResponse:
    count, _, reset_at = verdict.window()
    return ProviderDataResponse(
        message=message,
        key_used=verdict.key,
        usage=UsageInfo(count=count, reset_at=isoformat_utc(reset_at)),
        **payload,
    )


@router.get(
    "/data",
    response_model=ProviderDataResponse,
    responses=_REJECTIONS,
    summary="Provider data, key in header",
)
async def get_data_by_header(
    verdict: Verdict = Depends(require_provider_key(KeySource.HEADER)),
    payload: dict[str, Any] = Depends(get_backend_payload),
) -> ProviderDataResponse:
    logger.info("[DATA] Header key=%s count=%d", mask_key(verdict.key), verdict.count)
    return _build_response(verdict, "Success from provider (header key endpoint)", payload)


@router.get(
    "/data2",
    response_model=ProviderDataResponse,
    responses=_REJECTIONS,
    summary="Provider data, key in query string",
)
async def get_data_by_query(
    verdict: Verdict = Depends(require_provider_key(KeySource.QUERY)),
    payload: dict[str, Any] = Depends(get_backend_payload),
) -> ProviderDataResponse:
    logger.info("[DATA2] Query key=%s count=%d", mask_key(verdict.key), verdict.count)
    return _build_response(verdict, "Success from provider (query key endpoint)", payload)
