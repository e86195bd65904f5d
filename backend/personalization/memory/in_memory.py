"""In-process backends for development and tests.

Selected with ``STORAGE_BACKEND=memory``. Records are copied on the way in
and out so callers never share mutable state with the store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from personalization.models.patterns import ConversationRecord, LearningPattern
from personalization.models.preferences import Attribution, Preference

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class InMemoryPreferenceBackend:
    """Dictionary-backed implementation of ``PreferenceBackend``."""

    def __init__(self) -> None:
        self._preferences: dict[tuple[str, str, str], Preference] = {}
        self._patterns: dict[str, list[LearningPattern]] = {}
        self._attributions: dict[tuple[str, str], Attribution] = {}

    async def ping(self) -> None:
        return None

    async def find_preference(
        self, user_id: str, preference_type: str, preference_key: str
    ) -> Optional[Preference]:
        found = self._preferences.get((user_id, preference_type, preference_key))
        return found.model_copy(deep=True) if found else None

    async def save_preference(self, preference: Preference) -> None:
        key = (preference.user_id, preference.type, preference.key)
        existing = self._preferences.get(key)
        stored = preference.model_copy(deep=True)
        if existing is not None:
            stored.created_at = existing.created_at
        self._preferences[key] = stored

    async def list_preferences(self, user_id: str) -> list[Preference]:
        rows = [
            p.model_copy(deep=True)
            for (owner, _, _), p in self._preferences.items()
            if owner == user_id
        ]
        return sorted(rows, key=lambda p: p.last_updated, reverse=True)

    async def delete_user(self, user_id: str) -> None:
        for key in [k for k in self._preferences if k[0] == user_id]:
            del self._preferences[key]
        for key in [k for k in self._attributions if k[0] == user_id]:
            del self._attributions[key]
        self._patterns.pop(user_id, None)

    async def replace_patterns(
        self, user_id: str, patterns: list[LearningPattern]
    ) -> None:
        self._patterns[user_id] = [p.model_copy(deep=True) for p in patterns]

    async def list_patterns(self, user_id: str) -> list[LearningPattern]:
        return [p.model_copy(deep=True) for p in self._patterns.get(user_id, [])]

    async def save_attribution(self, attribution: Attribution) -> None:
        key = (attribution.user_id, attribution.interaction_ref)
        self._attributions[key] = attribution.model_copy(deep=True)

    async def find_attribution(
        self, user_id: str, interaction_ref: str
    ) -> Optional[Attribution]:
        found = self._attributions.get((user_id, interaction_ref))
        return found.model_copy(deep=True) if found else None


class InMemoryConversationLog:
    """List-backed implementation of ``ConversationLog``."""

    def __init__(self) -> None:
        self._records: dict[str, list[ConversationRecord]] = {}

    def add(self, user_id: str, record: ConversationRecord) -> None:
        self._records.setdefault(user_id, []).append(record)

    async def recent(
        self,
        user_id: str,
        limit: int,
        since: Optional[datetime] = None,
    ) -> list[ConversationRecord]:
        records = self._records.get(user_id, [])
        if since is not None:
            records = [
                r for r in records if r.created_at is None or r.created_at >= since
            ]
        records = sorted(records, key=lambda r: r.created_at or _EPOCH)
        return [r.model_copy() for r in records[-limit:]] if limit else []
