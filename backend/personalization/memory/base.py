"""Persistence protocols the learning components depend on.

Implementations raise ``StoreUnavailable`` when the backing store cannot be
reached; they never retry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from personalization.models.patterns import ConversationRecord, LearningPattern
from personalization.models.preferences import Attribution, Preference


@runtime_checkable
class PreferenceBackend(Protocol):
    """Keyed record store over preferences, patterns and attributions."""

    async def ping(self) -> None: ...

    async def find_preference(
        self, user_id: str, preference_type: str, preference_key: str
    ) -> Optional[Preference]: ...

    async def save_preference(self, preference: Preference) -> None: ...

    async def list_preferences(self, user_id: str) -> list[Preference]: ...

    async def delete_user(self, user_id: str) -> None: ...

    async def replace_patterns(
        self, user_id: str, patterns: list[LearningPattern]
    ) -> None: ...

    async def list_patterns(self, user_id: str) -> list[LearningPattern]: ...

    async def save_attribution(self, attribution: Attribution) -> None: ...

    async def find_attribution(
        self, user_id: str, interaction_ref: str
    ) -> Optional[Attribution]: ...


@runtime_checkable
class ConversationLog(Protocol):
    """Read-only access to a user's logged conversation messages."""

    async def recent(
        self,
        user_id: str,
        limit: int,
        since: Optional[datetime] = None,
    ) -> list[ConversationRecord]:
        """Return up to ``limit`` records newer than ``since``, oldest first."""
        ...
