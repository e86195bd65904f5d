"""Health check endpoint for infrastructure monitoring."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from personalization.config import Settings, get_settings
from personalization.dependencies import get_engine
from personalization.learning.engine import PreferenceEngine

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def health_check(
    settings: Settings = Depends(get_settings),
    engine: PreferenceEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Return aggregate health of the storage backend and cache."""
    storage_ok = await engine.ping()

    services = {
        settings.storage_backend: {"status": "healthy" if storage_ok else "unhealthy"},
        "preference_cache": {"status": "healthy", **engine.cache.stats()},
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in services.values())
        else "degraded"
    )

    return {
        "status": overall,
        "services": services,
    }
