"""Feedback Incorporator - explicit feedback nudges attributed preferences."""

from __future__ import annotations

import logging

from personalization.learning.cache import PreferenceCache
from personalization.memory.base import PreferenceBackend
from personalization.models.preferences import Feedback, FeedbackKind, Preference

logger = logging.getLogger(__name__)


class FeedbackIncorporator:
    """Reinforces or decays the preferences a prior interaction produced.

    Positive feedback applies the same bump as a repeated signal. Negative
    feedback halves confidence down to a floor; records are never deleted.
    """

    def __init__(self, cache: PreferenceCache, backend: PreferenceBackend) -> None:
        self.cache = cache
        self.backend = backend

    async def incorporate(self, user_id: str, feedback: Feedback) -> list[Preference]:
        attribution = await self.backend.find_attribution(
            user_id, feedback.interaction_ref
        )
        if attribution is None:
            logger.info(
                "No attribution for interaction %s (user %s); feedback ignored",
                feedback.interaction_ref,
                user_id,
            )
            return []

        updated: list[Preference] = []
        for attributed in attribution.signals:
            current = await self.cache.store.find(user_id, attributed.type, attributed.key)
            if current is None or current.value != attributed.value:
                # preference was reset or replaced since the interaction
                continue

            if feedback.feedback is FeedbackKind.POSITIVE:
                result = await self.cache.reinforce(user_id, attributed.type, attributed.key)
            else:
                result = await self.cache.decay(user_id, attributed.type, attributed.key)
            if result is not None:
                updated.append(result)

        logger.info(
            "Applied %s feedback to %d preference(s) for user %s",
            feedback.feedback.value,
            len(updated),
            user_id,
        )
        return updated
