"""Cache Layer - per-process read-through / write-through cache over the store.

Reads are served from an in-memory snapshot until its TTL expires. Writes
go to the store first and then invalidate the user's entry, so a read after
a local write never returns stale data. Entries are immutable and swapped in
whole, so concurrent readers never observe a partially written entry.

A per-user generation counter is bumped when a user is invalidated while a
load for that user is in flight, and that load then discards its (now stale)
result. Counters are dropped once no load is in flight, and expired entries
are swept whenever a new entry is stored, so both maps stay bounded by the
number of recently active users.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from personalization.errors import CacheCorruption
from personalization.learning.store import PreferenceStore
from personalization.models.preferences import Preference, PreferenceSet, Signal
from personalization.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


class CacheEntry(BaseModel):
    """Frozen snapshot of one user's preference set."""

    model_config = ConfigDict(frozen=True)

    preferences: PreferenceSet
    expires_at: datetime


def _copy(preferences: PreferenceSet) -> PreferenceSet:
    # struct values are plain dicts inside the frozen snapshots
    return {
        ptype: {key: snap.model_copy(deep=True) for key, snap in keys.items()}
        for ptype, keys in preferences.items()
    }


class PreferenceCache:
    """TTL-bounded cache that wraps every ``PreferenceStore`` operation."""

    def __init__(
        self,
        store: PreferenceStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or SystemClock()
        self._entries: dict[str, Any] = {}
        self._generations: dict[str, int] = {}
        self._loading: dict[str, int] = {}
        self.hits = 0
        self.misses = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, user_id: str) -> PreferenceSet:
        """Return the user's preferences, loading from the store on a miss."""
        entry = self._lookup(user_id)
        if entry is not None:
            self.hits += 1
            return _copy(entry.preferences)

        self.misses += 1
        self._loading[user_id] = self._loading.get(user_id, 0) + 1
        generation = self._generations.get(user_id, 0)
        try:
            preferences = await self.store.get(user_id)
            if self._generations.get(user_id, 0) == generation:
                self._sweep()
                self._entries[user_id] = CacheEntry(
                    preferences=preferences,
                    expires_at=self.clock.now() + self.ttl,
                )
            else:
                logger.debug("Discarding stale load for user %s", user_id)
        finally:
            self._finish_load(user_id)
        return _copy(preferences)

    def _finish_load(self, user_id: str) -> None:
        remaining = self._loading.pop(user_id) - 1
        if remaining:
            self._loading[user_id] = remaining
        else:
            self._generations.pop(user_id, None)

    def _sweep(self) -> None:
        """Drop every expired entry."""
        now = self.clock.now()
        expired = [
            user_id
            for user_id, entry in self._entries.items()
            if isinstance(entry, CacheEntry) and now >= entry.expires_at
        ]
        for user_id in expired:
            del self._entries[user_id]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))

    def _lookup(self, user_id: str) -> Optional[CacheEntry]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        try:
            self._validate(entry)
        except CacheCorruption:
            logger.warning("Dropping corrupt cache entry for user %s", user_id)
            self._entries.pop(user_id, None)
            return None
        if self.is_expired(entry):
            self._entries.pop(user_id, None)
            return None
        return entry

    @staticmethod
    def _validate(entry: Any) -> None:
        if not isinstance(entry, CacheEntry) or not isinstance(entry.preferences, dict):
            raise CacheCorruption(f"unexpected cache entry: {type(entry).__name__}")

    def is_expired(self, entry: CacheEntry) -> bool:
        return self.clock.now() >= entry.expires_at

    # ------------------------------------------------------------------
    # Writes (store first, then invalidate)
    # ------------------------------------------------------------------

    async def upsert(self, user_id: str, signal: Signal) -> Preference:
        try:
            return await self.store.upsert(user_id, signal)
        finally:
            self.invalidate(user_id)

    async def replace(self, user_id: str, signal: Signal) -> Preference:
        try:
            return await self.store.replace(user_id, signal)
        finally:
            self.invalidate(user_id)

    async def reinforce(
        self, user_id: str, preference_type: str, preference_key: str
    ) -> Optional[Preference]:
        try:
            return await self.store.reinforce(user_id, preference_type, preference_key)
        finally:
            self.invalidate(user_id)

    async def decay(
        self, user_id: str, preference_type: str, preference_key: str
    ) -> Optional[Preference]:
        try:
            return await self.store.decay(user_id, preference_type, preference_key)
        finally:
            self.invalidate(user_id)

    async def reset(self, user_id: str) -> None:
        try:
            await self.store.reset(user_id)
        finally:
            self.invalidate(user_id)

    def invalidate(self, user_id: str) -> None:
        """Drop the user's entry and fence off in-flight loads."""
        if user_id in self._loading:
            self._generations[user_id] = self._generations.get(user_id, 0) + 1
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        for user_id in set(self._entries) | set(self._loading):
            self.invalidate(user_id)

    def stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}
