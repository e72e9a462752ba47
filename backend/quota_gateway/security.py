"""Request-side security: provider key extraction, quota checks, admin secret.

Both provider endpoints go through ``require_provider_key``; they differ only in
where the key is read from, so validation and limiting cannot drift apart.
"""
from __future__ import annotations

import enum
import hmac
import logging
import math
from datetime import datetime
from typing import Any, Callable

from fastapi import Depends, Request, Response, status

from quota_gateway.core.config import Settings
from quota_gateway.deps import get_app_settings, get_now, get_rate_limiter
from quota_gateway.schemas.provider import isoformat_utc
from quota_gateway.services.keys import mask_key
from quota_gateway.services.rate_limit import RateLimiter, Verdict, VerdictStatus

logger = logging.getLogger(__name__)


class GatewayRejection(Exception):
    """A final, non-fatal refusal rendered as a JSON body by the app handler."""

    def __init__(
        self,
        status_code: int,
        content: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(content.get("error", "rejected"))
        self.status_code = status_code
        self.content = content
        self.headers = headers


class KeySource(str, enum.Enum):
    HEADER = "header"
    QUERY = "query"


def extract_key(request: Request, source: KeySource, settings: Settings) -> str | None:
    if source is KeySource.HEADER:
        return request.headers.get(settings.provider_key_header)
    return request.query_params.get(settings.provider_key_query_param)


def rejection_for(verdict: Verdict, now: datetime) -> GatewayRejection:
    if verdict.status is VerdictStatus.MISSING_KEY:
        return GatewayRejection(
            status.HTTP_401_UNAUTHORIZED,
            {
                "error": "Missing API key",
                "detail": "Send key in header or query depending on endpoint",
            },
        )
    if verdict.status is VerdictStatus.INVALID_KEY:
        return GatewayRejection(
            status.HTTP_401_UNAUTHORIZED,
            {"error": "Invalid API key", "detail": "Key not recognized"},
        )
    if verdict.status is VerdictStatus.QUOTA_EXCEEDED:
        _, limit, reset_at = verdict.window()
        retry_after = max(1, math.ceil((reset_at - now).total_seconds()))
        return GatewayRejection(
            status.HTTP_429_TOO_MANY_REQUESTS,
            {
                "error": "Daily quota exceeded",
                "key": verdict.key,
                "allowed_per_day": limit,
                "reset_at": isoformat_utc(reset_at),
            },
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(reset_at.timestamp())),
            },
        )
    raise ValueError(f"No rejection for verdict {verdict.status}")


def require_provider_key(source: KeySource) -> Callable:
    """Dependency factory: admit the request or raise GatewayRejection."""

    async def _dep(
        request: Request,
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
        settings: Settings = Depends(get_app_settings),
        now: datetime = Depends(get_now),
    ) -> Verdict:
        key = extract_key(request, source, settings)
        verdict = limiter.check_and_consume(key, now)
        # Picked up by the audit middleware
        request.state.actor = "api_key"
        request.state.verdict = verdict
        if not verdict.allowed:
            logger.info(
                "Rejected %s request: %s (key=%s)",
                source.value,
                verdict.status.value,
                mask_key(key) if key else "-",
            )
            raise rejection_for(verdict, now)

        count, limit, reset_at = verdict.window()
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(limit - count)
        response.headers["X-RateLimit-Reset"] = str(int(reset_at.timestamp()))
        return verdict

    return _dep


async def require_admin_secret(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Compare the presented admin credential with the configured secret.

    An empty configured secret disables the admin endpoints.
    """
    if not settings.admin_secret:
        raise GatewayRejection(
            status.HTTP_403_FORBIDDEN,
            {"error": "Forbidden", "detail": "Admin control is disabled"},
        )
    presented = request.headers.get(settings.admin_secret_header) or ""
    if not hmac.compare_digest(presented.encode("utf-8"), settings.admin_secret.encode("utf-8")):
        client_ip = request.client.host if request.client else "unknown"
        logger.warning("Invalid admin secret from %s", client_ip)
        raise GatewayRejection(
            status.HTTP_403_FORBIDDEN,
            {"error": "Forbidden", "detail": "Invalid admin secret"},
        )
    request.state.actor = "admin"
    return {"roles": ["admin"]}


__all__ = [
    "GatewayRejection",
    "KeySource",
    "extract_key",
    "rejection_for",
    "require_admin_secret",
    "require_provider_key",
]
