"""MongoDB reader for logged agent conversations.

Document schema (written by the chat service, read-only here)::

    {
        "user_id": "u-1",
        "content": "Can you finish the report today?",
        "message_type": "user_message",
        "created_at": ISODate("2026-02-08T10:30:00Z")
    }
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from personalization.errors import StoreUnavailable
from personalization.models.patterns import ConversationRecord

logger = logging.getLogger(__name__)

COLLECTION_NAME = "agent_conversations"


def _document_to_record(doc: dict[str, Any]) -> ConversationRecord:
    return ConversationRecord(
        content=doc.get("content") or "",
        message_type=doc.get("message_type", "user_message"),
        created_at=doc.get("created_at"),
    )


class MongoConversationLog:
    """Time-windowed view over a user's conversation messages."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def recent(
        self,
        user_id: str,
        limit: int,
        since: Optional[datetime] = None,
    ) -> list[ConversationRecord]:
        """Return the newest ``limit`` records after ``since``, oldest first."""
        query: dict[str, Any] = {"user_id": user_id}
        if since is not None:
            query["created_at"] = {"$gte": since}

        try:
            cursor = (
                self._collection.find(
                    query, {"content": 1, "message_type": 1, "created_at": 1}
                )
                .sort("created_at", DESCENDING)
                .limit(limit)
            )
            docs = await cursor.to_list(length=limit)
        except PyMongoError as exc:
            logger.warning("Failed to read conversations for %s: %s", user_id, exc)
            raise StoreUnavailable(f"conversation log unavailable: {exc}") from exc

        records = [_document_to_record(doc) for doc in docs]
        records.reverse()
        logger.debug("Loaded %d conversation records for %s", len(records), user_id)
        return records
