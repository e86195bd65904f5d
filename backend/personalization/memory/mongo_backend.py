"""MongoDB implementation of ``PreferenceBackend`` using motor.

Collections::

    user_preferences        unique (user_id, preference_type, preference_key)
    user_learning_patterns  unique (user_id, pattern_type)
    preference_attributions unique (user_id, interaction_ref)

Preference document schema::

    {
        "user_id": "u-1",
        "preference_type": "style",
        "preference_key": "communication_style",
        "preference_value": {"kind": "text", "value": "brief"},
        "confidence_score": 0.6,
        "usage_count": 1,
        "last_updated": ISODate(...),
        "created_at": ISODate(...)
    }
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from personalization.errors import StoreUnavailable
from personalization.models.patterns import LearningPattern
from personalization.models.preferences import Attribution, Preference

logger = logging.getLogger(__name__)

PREFERENCES_COLLECTION = "user_preferences"
PATTERNS_COLLECTION = "user_learning_patterns"
ATTRIBUTIONS_COLLECTION = "preference_attributions"


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate driver errors into ``StoreUnavailable``."""
    try:
        yield
    except PyMongoError as exc:
        logger.warning("MongoDB %s failed: %s", operation, exc)
        raise StoreUnavailable(f"MongoDB {operation} failed: {exc}") from exc


def _preference_to_document(preference: Preference) -> dict[str, Any]:
    return {
        "user_id": preference.user_id,
        "preference_type": preference.type,
        "preference_key": preference.key,
        "preference_value": preference.value.model_dump(),
        "confidence_score": preference.confidence,
        "usage_count": preference.usage_count,
        "last_updated": preference.last_updated,
    }


def _document_to_preference(doc: dict[str, Any]) -> Preference:
    payload = {
        "user_id": doc["user_id"],
        "type": doc["preference_type"],
        "key": doc["preference_key"],
        "value": doc["preference_value"],
        "confidence": doc.get("confidence_score", 0.5),
        "usage_count": doc.get("usage_count", 1),
    }
    for field in ("last_updated", "created_at"):
        if doc.get(field) is not None:
            payload[field] = doc[field]
    return Preference.model_validate(payload)


class MongoPreferenceBackend:
    """Preference, pattern and attribution records stored in MongoDB."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._db = database

    @property
    def preferences(self) -> AsyncIOMotorCollection:
        return self._db[PREFERENCES_COLLECTION]

    @property
    def patterns(self) -> AsyncIOMotorCollection:
        return self._db[PATTERNS_COLLECTION]

    @property
    def attributions(self) -> AsyncIOMotorCollection:
        return self._db[ATTRIBUTIONS_COLLECTION]

    async def ensure_indexes(self) -> None:
        """Create the uniqueness constraints the merge logic relies on."""
        with _store_errors("index creation"):
            await self.preferences.create_index(
                [
                    ("user_id", ASCENDING),
                    ("preference_type", ASCENDING),
                    ("preference_key", ASCENDING),
                ],
                unique=True,
            )
            await self.patterns.create_index(
                [("user_id", ASCENDING), ("pattern_type", ASCENDING)],
                unique=True,
            )
            await self.attributions.create_index(
                [("user_id", ASCENDING), ("interaction_ref", ASCENDING)],
                unique=True,
            )

    async def ping(self) -> None:
        with _store_errors("ping"):
            await self._db.command("ping")

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def find_preference(
        self, user_id: str, preference_type: str, preference_key: str
    ) -> Optional[Preference]:
        with _store_errors("find_preference"):
            doc = await self.preferences.find_one(
                {
                    "user_id": user_id,
                    "preference_type": preference_type,
                    "preference_key": preference_key,
                }
            )
        return _document_to_preference(doc) if doc else None

    async def save_preference(self, preference: Preference) -> None:
        with _store_errors("save_preference"):
            await self.preferences.update_one(
                {
                    "user_id": preference.user_id,
                    "preference_type": preference.type,
                    "preference_key": preference.key,
                },
                {
                    "$set": _preference_to_document(preference),
                    "$setOnInsert": {"created_at": preference.created_at},
                },
                upsert=True,
            )

    async def list_preferences(self, user_id: str) -> list[Preference]:
        with _store_errors("list_preferences"):
            cursor = self.preferences.find({"user_id": user_id}).sort(
                "last_updated", DESCENDING
            )
            docs = await cursor.to_list(length=None)
        return [_document_to_preference(doc) for doc in docs]

    async def delete_user(self, user_id: str) -> None:
        with _store_errors("delete_user"):
            prefs = await self.preferences.delete_many({"user_id": user_id})
            patterns = await self.patterns.delete_many({"user_id": user_id})
            await self.attributions.delete_many({"user_id": user_id})
        logger.info(
            "Deleted %d preferences and %d patterns for user %s",
            prefs.deleted_count,
            patterns.deleted_count,
            user_id,
        )

    # ------------------------------------------------------------------
    # Learning patterns
    # ------------------------------------------------------------------

    async def replace_patterns(
        self, user_id: str, patterns: list[LearningPattern]
    ) -> None:
        docs = []
        for pattern in patterns:
            doc = pattern.model_dump()
            doc["trigger_keywords"] = sorted(pattern.trigger_keywords)
            doc["confidence_score"] = doc.pop("confidence")
            docs.append(doc)
        with _store_errors("replace_patterns"):
            await self.patterns.delete_many({"user_id": user_id})
            if docs:
                await self.patterns.insert_many(docs)

    async def list_patterns(self, user_id: str) -> list[LearningPattern]:
        with _store_errors("list_patterns"):
            docs = await self.patterns.find({"user_id": user_id}).to_list(length=None)
        patterns = []
        for doc in docs:
            doc.pop("_id", None)
            doc["confidence"] = doc.pop("confidence_score", 0.5)
            patterns.append(LearningPattern.model_validate(doc))
        return patterns

    # ------------------------------------------------------------------
    # Attributions
    # ------------------------------------------------------------------

    async def save_attribution(self, attribution: Attribution) -> None:
        with _store_errors("save_attribution"):
            await self.attributions.replace_one(
                {
                    "user_id": attribution.user_id,
                    "interaction_ref": attribution.interaction_ref,
                },
                attribution.model_dump(),
                upsert=True,
            )

    async def find_attribution(
        self, user_id: str, interaction_ref: str
    ) -> Optional[Attribution]:
        with _store_errors("find_attribution"):
            doc = await self.attributions.find_one(
                {"user_id": user_id, "interaction_ref": interaction_ref}
            )
        if not doc:
            return None
        doc.pop("_id", None)
        return Attribution.model_validate(doc)
