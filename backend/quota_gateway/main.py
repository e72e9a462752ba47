"""FastAPI application entrypoint for the key quota gateway."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from quota_gateway import __version__
from quota_gateway.api.routes import api_router
from quota_gateway.core.config import Settings, get_settings
from quota_gateway.deps import get_audit_logger
from quota_gateway.security import GatewayRejection
from quota_gateway.services.audit import AuditRecord
from quota_gateway.services.keys import ConfigurationError, load_key_registry
from quota_gateway.services.rate_limit import RateConfig, RateLimiter

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str = "ok"


async def _gateway_rejection_handler(request: Request, exc: GatewayRejection) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.content, headers=exc.headers)


async def audit_middleware(request: Request, call_next):
    audit_logger = get_audit_logger(request.app.state.settings)
    if audit_logger is None:
        return await call_next(request)

    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    record = AuditRecord.for_request(
        request_id=request_id,
        method=request.method,
        path=str(request.url.path),
        status_code=response.status_code,
        duration_ms=elapsed_ms,
        actor=getattr(request.state, "actor", "anonymous"),
        verdict=getattr(request.state, "verdict", None),
        ip=request.client.host if request.client else None,
    )
    try:
        await asyncio.to_thread(audit_logger.write, record)
    except OSError:
        # Never fail a request because the audit file is unwritable
        logger.exception("Failed to write audit record for %s", record.path)
    response.headers["X-Request-Id"] = request_id
    return response


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the gateway; raises ConfigurationError on a bad key registry."""

    settings = settings or get_settings()
    registry = load_key_registry(settings)
    limiter = RateLimiter(registry, RateConfig(daily_limit=settings.daily_limit))

    app = FastAPI(title="Key Quota Gateway", version=__version__)
    app.state.settings = settings
    app.state.rate_limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
    )
    app.middleware("http")(audit_middleware)
    app.add_exception_handler(GatewayRejection, _gateway_rejection_handler)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check() -> HealthResponse:
        """Return service health information for monitoring and load-balancers."""
        return HealthResponse()

    if not settings.admin_secret:
        logger.warning("ADMIN_SECRET is empty; admin endpoints are disabled")
    logger.info(
        "Gateway ready: %d keys, daily limit %d, header=%s, query=%s",
        len(registry),
        settings.daily_limit,
        settings.provider_key_header,
        settings.provider_key_query_param,
    )
    return app


def run() -> None:
    """Console entrypoint: validate configuration, then serve with uvicorn."""

    import uvicorn

    try:
        settings = get_settings()
    except ValidationError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Invalid configuration: %s", exc)
        raise SystemExit(1) from exc

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        app = create_app(settings)
    except ConfigurationError as exc:
        logger.error("Cannot start gateway: %s", exc)
        raise SystemExit(1) from exc

    logger.info("Header endpoint: /api/v1/data (%s)", settings.provider_key_header)
    logger.info("Query endpoint : /api/v1/data2?%s=YOUR_KEY", settings.provider_key_query_param)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
