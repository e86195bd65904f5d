"""Central API router that aggregates all route modules."""

from fastapi import APIRouter

from personalization.api.health import router as health_router
from personalization.api.preferences import router as preferences_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(preferences_router, prefix="/preferences", tags=["preferences"])
