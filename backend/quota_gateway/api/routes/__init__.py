"""API route registrations."""
from fastapi import APIRouter

from quota_gateway.api.routes import admin, provider


api_router = APIRouter()
api_router.include_router(provider.router)
api_router.include_router(admin.router)

__all__ = ["api_router"]
