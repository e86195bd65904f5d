"""Tests for the MongoDB backends using mocked motor collections."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from personalization.errors import StoreUnavailable
from personalization.memory.conversation_log import MongoConversationLog
from personalization.memory.mongo_backend import (
    ATTRIBUTIONS_COLLECTION,
    PATTERNS_COLLECTION,
    PREFERENCES_COLLECTION,
    MongoPreferenceBackend,
)
from personalization.models.patterns import LearningPattern
from personalization.models.preferences import Preference, TextValue

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def _cursor(docs):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


@pytest.fixture
def collections():
    return {
        PREFERENCES_COLLECTION: MagicMock(),
        PATTERNS_COLLECTION: MagicMock(),
        ATTRIBUTIONS_COLLECTION: MagicMock(),
    }


@pytest.fixture
def mongo_backend(collections) -> MongoPreferenceBackend:
    database = MagicMock()
    database.__getitem__.side_effect = lambda name: collections[name]
    database.command = AsyncMock(return_value={"ok": 1})
    return MongoPreferenceBackend(database)


PREFERENCE_DOC = {
    "_id": "abc",
    "user_id": "u1",
    "preference_type": "style",
    "preference_key": "communication_style",
    "preference_value": {"kind": "text", "value": "brief"},
    "confidence_score": 0.6,
    "usage_count": 3,
    "last_updated": NOW,
    "created_at": NOW,
}


@pytest.mark.asyncio
async def test_find_preference_maps_document(mongo_backend, collections) -> None:
    collections[PREFERENCES_COLLECTION].find_one = AsyncMock(return_value=PREFERENCE_DOC)

    preference = await mongo_backend.find_preference("u1", "style", "communication_style")

    assert preference.value == TextValue(value="brief")
    assert preference.confidence == 0.6
    assert preference.usage_count == 3
    collections[PREFERENCES_COLLECTION].find_one.assert_awaited_once_with(
        {
            "user_id": "u1",
            "preference_type": "style",
            "preference_key": "communication_style",
        }
    )


@pytest.mark.asyncio
async def test_find_missing_preference(mongo_backend, collections) -> None:
    collections[PREFERENCES_COLLECTION].find_one = AsyncMock(return_value=None)

    assert await mongo_backend.find_preference("u1", "style", "x") is None


@pytest.mark.asyncio
async def test_save_preference_upserts_on_unique_key(mongo_backend, collections) -> None:
    collections[PREFERENCES_COLLECTION].update_one = AsyncMock()
    preference = Preference(
        user_id="u1",
        type="format",
        key="response_format",
        value=TextValue(value="word_tree"),
        confidence=0.8,
        last_updated=NOW,
        created_at=NOW,
    )

    await mongo_backend.save_preference(preference)

    args, kwargs = collections[PREFERENCES_COLLECTION].update_one.await_args
    assert args[0] == {
        "user_id": "u1",
        "preference_type": "format",
        "preference_key": "response_format",
    }
    assert args[1]["$set"]["preference_value"] == {"kind": "text", "value": "word_tree"}
    assert args[1]["$set"]["confidence_score"] == 0.8
    assert args[1]["$setOnInsert"] == {"created_at": NOW}
    assert kwargs == {"upsert": True}


@pytest.mark.asyncio
async def test_list_preferences(mongo_backend, collections) -> None:
    collections[PREFERENCES_COLLECTION].find.return_value = _cursor([PREFERENCE_DOC])

    preferences = await mongo_backend.list_preferences("u1")

    assert [p.key for p in preferences] == ["communication_style"]


@pytest.mark.asyncio
async def test_driver_errors_become_store_unavailable(mongo_backend, collections) -> None:
    collections[PREFERENCES_COLLECTION].find_one = AsyncMock(
        side_effect=ServerSelectionTimeoutError("no servers")
    )

    with pytest.raises(StoreUnavailable):
        await mongo_backend.find_preference("u1", "style", "communication_style")


@pytest.mark.asyncio
async def test_delete_user_clears_all_collections(mongo_backend, collections) -> None:
    for collection in collections.values():
        collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=1))

    await mongo_backend.delete_user("u1")

    for collection in collections.values():
        collection.delete_many.assert_awaited_once_with({"user_id": "u1"})


@pytest.mark.asyncio
async def test_replace_patterns_is_wholesale(mongo_backend, collections) -> None:
    patterns = collections[PATTERNS_COLLECTION]
    patterns.delete_many = AsyncMock()
    patterns.insert_many = AsyncMock()

    await mongo_backend.replace_patterns(
        "u1",
        [
            LearningPattern(
                user_id="u1",
                pattern_type="urgency",
                trigger_keywords={"urgent", "asap"},
                confidence=0.9,
            )
        ],
    )

    patterns.delete_many.assert_awaited_once_with({"user_id": "u1"})
    (docs,), _ = patterns.insert_many.await_args
    assert docs[0]["trigger_keywords"] == ["asap", "urgent"]
    assert docs[0]["confidence_score"] == 0.9


@pytest.mark.asyncio
async def test_ping(mongo_backend) -> None:
    await mongo_backend.ping()


@pytest.mark.asyncio
async def test_conversation_log_returns_oldest_first() -> None:
    collection = MagicMock()
    cursor = _cursor(
        [
            {"content": "second", "message_type": "user_message", "created_at": NOW},
            {"content": "first", "message_type": "user_message", "created_at": NOW},
        ]
    )
    collection.find.return_value = cursor
    log = MongoConversationLog(collection)

    records = await log.recent("u1", limit=2, since=NOW)

    assert [r.content for r in records] == ["first", "second"]
    query = collection.find.call_args.args[0]
    assert query == {"user_id": "u1", "created_at": {"$gte": NOW}}
    cursor.limit.assert_called_once_with(2)


@pytest.mark.asyncio
async def test_conversation_log_errors() -> None:
    collection = MagicMock()
    cursor = _cursor([])
    cursor.to_list = AsyncMock(side_effect=ServerSelectionTimeoutError("down"))
    collection.find.return_value = cursor

    with pytest.raises(StoreUnavailable):
        await MongoConversationLog(collection).recent("u1", limit=10)
