"""Preference Store - merge semantics and confidence scoring over a backend.

Merge rules for ``upsert``:

    no record                          -> create (confidence = signal, usage 1)
    same value                         -> reinforce, usage + 1
    different value, higher confidence -> replace value, usage reset to 1
    different value, otherwise         -> keep the incumbent untouched
"""

from __future__ import annotations

import logging
from typing import Optional

from personalization.memory.base import PreferenceBackend
from personalization.models.preferences import Preference, PreferenceSet, Signal
from personalization.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

DEFAULT_REINFORCEMENT_RATE = 0.1
DEFAULT_DECAY_FACTOR = 0.5
DEFAULT_DECAY_FLOOR = 0.05


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, value))


def reinforce_confidence(
    confidence: float, rate: float = DEFAULT_REINFORCEMENT_RATE
) -> float:
    """Move ``confidence`` a fixed fraction of the way towards 1.0."""
    return clamp_confidence(min(1.0, confidence + rate * (1.0 - confidence)))


def decay_confidence(
    confidence: float,
    factor: float = DEFAULT_DECAY_FACTOR,
    floor: float = DEFAULT_DECAY_FLOOR,
) -> float:
    """Scale ``confidence`` down, never below ``floor``."""
    return clamp_confidence(max(floor, confidence * factor))


class PreferenceStore:
    """Durable per-user preferences with upsert/merge semantics.

    Every method raises ``StoreUnavailable`` when the backend cannot be
    reached. No retries are attempted here.
    """

    def __init__(
        self,
        backend: PreferenceBackend,
        clock: Optional[Clock] = None,
        reinforcement_rate: float = DEFAULT_REINFORCEMENT_RATE,
        decay_factor: float = DEFAULT_DECAY_FACTOR,
        decay_floor: float = DEFAULT_DECAY_FLOOR,
    ) -> None:
        self.backend = backend
        self.clock = clock or SystemClock()
        self.reinforcement_rate = reinforcement_rate
        self.decay_factor = decay_factor
        self.decay_floor = decay_floor

    async def upsert(self, user_id: str, signal: Signal) -> Preference:
        """Merge ``signal`` into the user's stored preference."""
        now = self.clock.now()
        existing = await self.backend.find_preference(user_id, signal.type, signal.key)

        if existing is None:
            preference = Preference(
                user_id=user_id,
                type=signal.type,
                key=signal.key,
                value=signal.value,
                confidence=clamp_confidence(signal.confidence),
                usage_count=1,
                last_updated=now,
                created_at=now,
            )
            logger.info(
                "Created preference %s.%s for user %s", signal.type, signal.key, user_id
            )
        elif existing.value == signal.value:
            preference = existing.model_copy(
                update={
                    "confidence": reinforce_confidence(
                        existing.confidence, self.reinforcement_rate
                    ),
                    "usage_count": existing.usage_count + 1,
                    "last_updated": now,
                }
            )
            logger.debug(
                "Reinforced %s.%s for user %s: %.3f -> %.3f",
                signal.type,
                signal.key,
                user_id,
                existing.confidence,
                preference.confidence,
            )
        elif signal.confidence > existing.confidence:
            preference = existing.model_copy(
                update={
                    "value": signal.value,
                    "confidence": clamp_confidence(signal.confidence),
                    "usage_count": 1,
                    "last_updated": now,
                }
            )
            logger.info(
                "Replaced %s.%s for user %s (%.2f > %.2f)",
                signal.type,
                signal.key,
                user_id,
                signal.confidence,
                existing.confidence,
            )
        else:
            logger.debug(
                "Kept incumbent %s.%s for user %s", signal.type, signal.key, user_id
            )
            return existing

        await self.backend.save_preference(preference)
        return preference

    async def replace(self, user_id: str, signal: Signal) -> Preference:
        """Overwrite a preference regardless of what is stored."""
        now = self.clock.now()
        existing = await self.backend.find_preference(user_id, signal.type, signal.key)
        preference = Preference(
            user_id=user_id,
            type=signal.type,
            key=signal.key,
            value=signal.value,
            confidence=clamp_confidence(signal.confidence),
            usage_count=existing.usage_count if existing else 1,
            last_updated=now,
            created_at=existing.created_at if existing else now,
        )
        await self.backend.save_preference(preference)
        return preference

    async def reinforce(
        self, user_id: str, preference_type: str, preference_key: str
    ) -> Optional[Preference]:
        """Apply one reinforcement step to an existing preference."""
        existing = await self.backend.find_preference(
            user_id, preference_type, preference_key
        )
        if existing is None:
            return None
        preference = existing.model_copy(
            update={
                "confidence": reinforce_confidence(
                    existing.confidence, self.reinforcement_rate
                ),
                "usage_count": existing.usage_count + 1,
                "last_updated": self.clock.now(),
            }
        )
        await self.backend.save_preference(preference)
        return preference

    async def decay(
        self, user_id: str, preference_type: str, preference_key: str
    ) -> Optional[Preference]:
        """Apply one decay step; the record itself is never removed."""
        existing = await self.backend.find_preference(
            user_id, preference_type, preference_key
        )
        if existing is None:
            return None
        preference = existing.model_copy(
            update={
                "confidence": decay_confidence(
                    existing.confidence, self.decay_factor, self.decay_floor
                ),
                "last_updated": self.clock.now(),
            }
        )
        await self.backend.save_preference(preference)
        return preference

    async def find(
        self, user_id: str, preference_type: str, preference_key: str
    ) -> Optional[Preference]:
        return await self.backend.find_preference(
            user_id, preference_type, preference_key
        )

    async def get(self, user_id: str) -> PreferenceSet:
        """Return the user's preferences nested as type -> key -> snapshot."""
        organized: PreferenceSet = {}
        for preference in await self.backend.list_preferences(user_id):
            organized.setdefault(preference.type, {})[preference.key] = (
                preference.snapshot()
            )
        return organized

    async def reset(self, user_id: str) -> None:
        """Delete every preference, pattern and attribution for the user."""
        await self.backend.delete_user(user_id)
        logger.info("Reset all learned preferences for user %s", user_id)
