"""Preference Engine - the personalization facade owned by the host service.

Every public coroutine here is an operation boundary: component failures are
logged and converted into a safe default so personalization can never block
the generation pipeline.

    get        -> {} on failure
    apply      -> base context unchanged on failure
    learn      -> empty result on failure (signals applied so far are kept)
    incorporate-> no-op on failure
    analyze    -> default patterns on failure
    stored_patterns -> [] on failure
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from personalization.config import Settings
from personalization.learning.applier import PreferenceApplier
from personalization.learning.cache import PreferenceCache
from personalization.learning.extractor import SignalExtractor
from personalization.learning.feedback import FeedbackIncorporator
from personalization.learning.patterns import PatternAnalyzer
from personalization.learning.store import PreferenceStore
from personalization.memory.base import ConversationLog, PreferenceBackend
from personalization.models.context import GenerationContext
from personalization.models.patterns import (
    LearningPattern,
    OversightRecommendation,
    Patterns,
    Suggestion,
)
from personalization.models.preferences import (
    AttributedSignal,
    Attribution,
    Feedback,
    Interaction,
    LearningResult,
    PreferenceSet,
    Signal,
    StructValue,
)
from personalization.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

SUGGESTION_TYPE = "suggestion"


class PreferenceEngine:
    """Learns, stores, caches and applies per-user preferences.

    Lifecycle:
        engine = PreferenceEngine.from_settings(settings, backend, conversation_log)
        ...
        await engine.close()
    """

    def __init__(
        self,
        extractor: SignalExtractor,
        cache: PreferenceCache,
        applier: PreferenceApplier,
        analyzer: PatternAnalyzer,
        incorporator: FeedbackIncorporator,
        clock: Optional[Clock] = None,
    ) -> None:
        self.extractor = extractor
        self.cache = cache
        self.applier = applier
        self.analyzer = analyzer
        self.incorporator = incorporator
        self.clock = clock or SystemClock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        backend: PreferenceBackend,
        conversation_log: ConversationLog,
        clock: Optional[Clock] = None,
    ) -> PreferenceEngine:
        clock = clock or SystemClock()
        store = PreferenceStore(
            backend,
            clock=clock,
            reinforcement_rate=settings.reinforcement_rate,
            decay_factor=settings.decay_factor,
            decay_floor=settings.decay_floor,
        )
        cache = PreferenceCache(
            store, ttl_seconds=settings.preference_cache_ttl_seconds, clock=clock
        )
        analyzer = PatternAnalyzer(
            conversation_log,
            backend,
            clock=clock,
            window_size=settings.pattern_window_size,
            lookback_days=settings.pattern_lookback_days,
            completion_threshold=settings.completion_rate_threshold,
            urgency_threshold=settings.urgency_rate_threshold,
            escalation_threshold=settings.escalation_rate_threshold,
            brief_length=settings.brief_length_threshold,
            detailed_length=settings.detailed_length_threshold,
        )
        return cls(
            extractor=SignalExtractor(),
            cache=cache,
            applier=PreferenceApplier(min_confidence=settings.min_apply_confidence),
            analyzer=analyzer,
            incorporator=FeedbackIncorporator(cache, backend),
            clock=clock,
        )

    @property
    def backend(self) -> PreferenceBackend:
        return self.cache.store.backend

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    async def learn(self, user_id: str, interaction: Interaction) -> LearningResult:
        """Extract signals from one interaction and merge them into the store.

        Signals are applied as independent sequential upserts. If one fails,
        those already written stay written.
        """
        signals = self.extractor.extract(
            interaction.message, interaction.response, interaction.timestamp
        )
        if not signals:
            return LearningResult()

        applied: list[Signal] = []
        try:
            for signal in signals:
                await self.cache.upsert(user_id, signal)
                applied.append(signal)

            interaction_ref = uuid4().hex
            await self.backend.save_attribution(
                Attribution(
                    user_id=user_id,
                    interaction_ref=interaction_ref,
                    signals=[
                        AttributedSignal(type=s.type, key=s.key, value=s.value)
                        for s in applied
                    ],
                    created_at=self.clock.now(),
                )
            )
        except Exception:
            logger.exception(
                "Learning failed for user %s after %d of %d signals",
                user_id,
                len(applied),
                len(signals),
            )
            return LearningResult(signals=applied)

        logger.info(
            "Learned %d preference signal(s) for user %s: %s",
            len(applied),
            user_id,
            ", ".join(f"{s.type}.{s.key}" for s in applied),
        )
        return LearningResult(interaction_ref=interaction_ref, signals=applied)

    async def update_preference(self, user_id: str, signal: Signal) -> bool:
        """Explicitly set a preference, bypassing merge rules."""
        try:
            await self.cache.replace(user_id, signal)
        except Exception:
            logger.exception("Error updating preference for user %s", user_id)
            return False
        logger.info("Updated preference for user %s: %s.%s", user_id, signal.type, signal.key)
        return True

    # ------------------------------------------------------------------
    # Reading and applying
    # ------------------------------------------------------------------

    async def get(self, user_id: str) -> PreferenceSet:
        try:
            return await self.cache.get(user_id)
        except Exception:
            logger.exception("Error getting preferences for user %s", user_id)
            return {}

    async def apply(
        self, user_id: str, base: Optional[GenerationContext] = None
    ) -> GenerationContext:
        """Effective generation context for the user; ``base`` on any failure."""
        base = base or GenerationContext()
        try:
            preferences = await self.cache.get(user_id)
            return self.applier.apply(preferences, base)
        except Exception:
            logger.exception("Error applying preferences for user %s", user_id)
            return base

    async def reset(self, user_id: str) -> bool:
        try:
            await self.cache.reset(user_id)
        except Exception:
            logger.exception("Error resetting preferences for user %s", user_id)
            return False
        return True

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def incorporate(self, user_id: str, feedback: Feedback) -> None:
        try:
            await self.incorporator.incorporate(user_id, feedback)
        except Exception:
            logger.exception(
                "Error incorporating feedback for user %s (interaction %s)",
                user_id,
                feedback.interaction_ref,
            )

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    async def analyze(self, user_id: str) -> Patterns:
        try:
            return await self.analyzer.analyze(user_id)
        except Exception:
            logger.exception("Error analyzing patterns for user %s", user_id)
            return Patterns()

    async def stored_patterns(self, user_id: str) -> list[LearningPattern]:
        """Pattern rows persisted by the last analysis, without re-analyzing."""
        try:
            return await self.backend.list_patterns(user_id)
        except Exception:
            logger.exception("Error loading stored patterns for user %s", user_id)
            return []

    async def suggestions(
        self, user_id: str, patterns: Optional[Patterns] = None
    ) -> list[Suggestion]:
        """Proactive suggestions, stored as ``suggestion`` preferences."""
        if patterns is None:
            patterns = await self.analyze(user_id)
        suggestions = self.analyzer.suggest(patterns)
        try:
            for suggestion in suggestions:
                await self.cache.replace(
                    user_id,
                    Signal(
                        type=SUGGESTION_TYPE,
                        key=suggestion.type,
                        value=StructValue(value=suggestion.model_dump()),
                        confidence=suggestion.confidence,
                    ),
                )
        except Exception:
            logger.exception("Error storing suggestions for user %s", user_id)
        return suggestions

    async def recommendations(self, user_id: str) -> OversightRecommendation:
        """Escalation settings for the supervisory agent."""
        try:
            patterns = await self.analyzer.analyze(user_id)
        except Exception:
            logger.exception("Error building recommendations for user %s", user_id)
            return OversightRecommendation()
        return self.analyzer.recommend(patterns)

    # ------------------------------------------------------------------
    # Health / lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        try:
            await self.backend.ping()
        except Exception as exc:
            logger.warning("Preference backend ping failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        self.cache.clear()
        logger.info("PreferenceEngine closed")
