"""Dependency injection providers for FastAPI.

The engine is built once in the application lifespan and kept on
``app.state``; route handlers receive it through ``get_engine``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from personalization.config import Settings
from personalization.learning.engine import PreferenceEngine
from personalization.memory.in_memory import (
    InMemoryConversationLog,
    InMemoryPreferenceBackend,
)
from personalization.memory.manager import StorageManager
from personalization.utils.clock import Clock


async def build_engine(
    settings: Settings, clock: Optional[Clock] = None
) -> tuple[PreferenceEngine, Optional[StorageManager]]:
    """Create the engine for the configured storage backend.

    Returns the engine and, for MongoDB, the storage manager whose
    connection must be closed on shutdown.
    """
    if settings.uses_mongodb:
        storage = StorageManager(settings)
        await storage.initialize()
        engine = PreferenceEngine.from_settings(
            settings, storage.preferences, storage.conversations, clock=clock
        )
        return engine, storage

    engine = PreferenceEngine.from_settings(
        settings, InMemoryPreferenceBackend(), InMemoryConversationLog(), clock=clock
    )
    return engine, None


def get_engine(request: Request) -> PreferenceEngine:
    """Return the engine owned by the running application."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise RuntimeError("PreferenceEngine not initialized - application not started")
    return engine
