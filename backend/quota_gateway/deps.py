"""FastAPI dependency helpers."""
from __future__ import annotations

import random
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from fastapi import Request

from quota_gateway.core.config import Settings
from quota_gateway.services.audit import AuditLogger
from quota_gateway.services.rate_limit import RateLimiter


def get_app_settings(request: Request) -> Settings:
    """Return the settings the running app was built with."""

    return request.app.state.settings


def get_rate_limiter(request: Request) -> RateLimiter:
    """Return the limiter owned by the running app."""

    return request.app.state.rate_limiter


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def get_backend_payload() -> dict[str, Any]:
    """Stand-in for the upstream provider response."""

    return {"value": random.randint(0, 99)}


@lru_cache
def _create_audit_logger(path: str) -> AuditLogger:
    return AuditLogger(path)


def get_audit_logger(settings: Settings) -> AuditLogger | None:
    """Return a shared AuditLogger, or None when auditing is disabled."""

    if not settings.audit_log_store_path:
        return None
    return _create_audit_logger(settings.audit_log_store_path)
