"""Storage manager owning the MongoDB connection for the engine.

Lifecycle:
    storage = StorageManager(settings)
    await storage.initialize()   # call once at startup
    ...
    await storage.close()        # call once at shutdown
"""

from __future__ import annotations

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from personalization.config import Settings
from personalization.memory.conversation_log import MongoConversationLog
from personalization.memory.mongo_backend import MongoPreferenceBackend

logger = logging.getLogger(__name__)


class StorageManager:
    """Connects to MongoDB and hands out the engine's backends."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._mongo_client: AsyncIOMotorClient | None = None
        self._mongo_db: AsyncIOMotorDatabase | None = None
        self._preferences: MongoPreferenceBackend | None = None
        self._conversations: MongoConversationLog | None = None
        self._initialized: bool = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Connect to MongoDB and prepare the backends."""
        if self._initialized:
            logger.warning("StorageManager already initialized - skipping")
            return

        logger.info("Connecting to MongoDB at %s", self._settings.mongodb_uri)
        self._mongo_client = AsyncIOMotorClient(
            self._settings.mongodb_uri,
            serverSelectionTimeoutMS=self._settings.mongodb_timeout_ms,
            tz_aware=True,
        )
        self._mongo_db = self._mongo_client[self._settings.mongodb_database]
        await self._mongo_client.admin.command("ping")
        logger.info("MongoDB connection established")

        self._preferences = MongoPreferenceBackend(self._mongo_db)
        await self._preferences.ensure_indexes()
        self._conversations = MongoConversationLog(
            self._mongo_db[self._settings.conversations_collection]
        )

        self._initialized = True
        logger.info("StorageManager fully initialized")

    async def close(self) -> None:
        """Release connections."""
        if self._mongo_client is not None:
            self._mongo_client.close()
            logger.info("MongoDB connection closed")
        self._initialized = False

    # ------------------------------------------------------------------
    # Properties (guard against use before init)
    # ------------------------------------------------------------------

    @property
    def preferences(self) -> MongoPreferenceBackend:
        if self._preferences is None:
            raise RuntimeError(
                "StorageManager not initialized - call initialize() first"
            )
        return self._preferences

    @property
    def conversations(self) -> MongoConversationLog:
        if self._conversations is None:
            raise RuntimeError(
                "StorageManager not initialized - call initialize() first"
            )
        return self._conversations

    @property
    def is_initialized(self) -> bool:
        return self._initialized
