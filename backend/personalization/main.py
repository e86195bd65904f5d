"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from personalization.api.router import api_router
from personalization.config import Settings, settings as default_settings
from personalization.dependencies import build_engine
from personalization.learning.engine import PreferenceEngine

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[PreferenceEngine] = None,
) -> FastAPI:
    """Build the application.

    When ``engine`` is given it is used as-is and no storage connection is
    opened; otherwise the engine is built from ``settings`` at startup.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application startup and shutdown lifecycle."""
        logger.info("Starting %s (%s)...", settings.app_name, settings.environment)

        storage = None
        if getattr(app.state, "engine", None) is None:
            app.state.engine, storage = await build_engine(settings)
            logger.info(
                "Preference engine initialized with %s backend",
                settings.storage_backend,
            )

        yield

        await app.state.engine.close()
        if storage is not None:
            await storage.close()
        logger.info("%s shut down cleanly", settings.app_name)

    app = FastAPI(
        title="Personalization Engine API",
        description="Learns user preferences from interactions and applies them to generation parameters",
        version="0.1.0",
        lifespan=lifespan,
    )
    if engine is not None:
        app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.frontend_url,
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
