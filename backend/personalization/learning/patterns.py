"""Pattern Analyzer - coarse behavioral patterns over recent conversations.

Patterns are recomputed from scratch for every analysis and replace whatever
was stored for the user before. Their output drives proactive suggestions and
the supervisory agent's escalation settings.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import timedelta
from typing import Iterable, Optional

from personalization.memory.base import ConversationLog, PreferenceBackend
from personalization.models.patterns import (
    CommunicationPattern,
    ConversationRecord,
    EscalationPattern,
    LearningPattern,
    OversightRecommendation,
    Patterns,
    Suggestion,
    TaskCompletionPattern,
    TimePattern,
    UrgencyPattern,
)
from personalization.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


def _lexicon(*words: str) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(word) for word in words)
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


COMPLETION_LEXICON = _lexicon(
    "completed", "finished", "done", "complete", "important", "critical", "priority"
)
IMPORTANCE_LEXICON = _lexicon("important", "critical", "priority")
SMALL_TASK_LEXICON = _lexicon("break down", "smaller", "step by step")
URGENCY_LEXICON = _lexicon(
    "urgent", "asap", "emergency", "critical", "immediately", "deadline", "now"
)
TIME_SENSITIVE_LEXICON = _lexicon("by tomorrow", "today", "deadline")
DIRECT_LEXICON = _lexicon("please", "could you", "can you")
ESCALATION_WORDS = ("help", "stuck", "problem", "issue", "error", "urgent", "critical")
ESCALATION_LEXICON = _lexicon(*ESCALATION_WORDS)

USER_MESSAGE = "user_message"


def _ratio(matching: int, total: int) -> float:
    return matching / total if total else 0.0


def _count(records: Iterable[ConversationRecord], lexicon: re.Pattern[str]) -> int:
    return sum(1 for record in records if lexicon.search(record.content))


class PatternAnalyzer:
    """Aggregates a bounded conversation window into ``Patterns``."""

    def __init__(
        self,
        conversation_log: ConversationLog,
        backend: PreferenceBackend,
        clock: Optional[Clock] = None,
        window_size: int = 100,
        lookback_days: int = 30,
        completion_threshold: float = 0.3,
        urgency_threshold: float = 0.1,
        escalation_threshold: float = 0.15,
        brief_length: int = 100,
        detailed_length: int = 300,
    ) -> None:
        self.conversation_log = conversation_log
        self.backend = backend
        self.clock = clock or SystemClock()
        self.window_size = window_size
        self.lookback_days = lookback_days
        self.completion_threshold = completion_threshold
        self.urgency_threshold = urgency_threshold
        self.escalation_threshold = escalation_threshold
        self.brief_length = brief_length
        self.detailed_length = detailed_length

    async def analyze(self, user_id: str) -> Patterns:
        """Analyze the user's recent window and store the resulting patterns."""
        since = None
        if self.lookback_days:
            since = self.clock.now() - timedelta(days=self.lookback_days)
        records = await self.conversation_log.recent(user_id, self.window_size, since)

        patterns = self.compute(records)
        await self.backend.replace_patterns(
            user_id, self.to_learning_patterns(user_id, patterns)
        )
        logger.info(
            "Analyzed %d conversation records for user %s", len(records), user_id
        )
        return patterns

    def compute(self, records: list[ConversationRecord]) -> Patterns:
        return Patterns(
            task_completion=self._task_completion(records),
            communication_style=self._communication(records),
            urgency=self._urgency(records),
            preferred_times=self._times(records),
            escalation_triggers=self._escalations(records),
        )

    # ------------------------------------------------------------------
    # Individual pattern families
    # ------------------------------------------------------------------

    def _task_completion(self, records: list[ConversationRecord]) -> TaskCompletionPattern:
        rate = _ratio(_count(records, COMPLETION_LEXICON), len(records))
        return TaskCompletionPattern(
            high_completion_rate=rate > self.completion_threshold,
            completion_focus=_count(records, IMPORTANCE_LEXICON) > 0,
            prefers_small_tasks=_count(records, SMALL_TASK_LEXICON) > 0,
            confidence=min(rate + 0.3, 1.0),
            sample_size=len(records),
        )

    def _communication(self, records: list[ConversationRecord]) -> CommunicationPattern:
        user_messages = [r for r in records if r.message_type == USER_MESSAGE]
        if not user_messages:
            return CommunicationPattern(confidence=0.7)

        avg_length = sum(len(r.content) for r in user_messages) / len(user_messages)
        questions = sum(1 for r in user_messages if "?" in r.content)
        return CommunicationPattern(
            prefers_brief=avg_length < self.brief_length,
            prefers_detailed=avg_length > self.detailed_length,
            asks_many_questions=_ratio(questions, len(user_messages)) > 0.3,
            direct_communication=_count(user_messages, DIRECT_LEXICON) > 0,
            confidence=0.7,
            sample_size=len(user_messages),
        )

    def _urgency(self, records: list[ConversationRecord]) -> UrgencyPattern:
        ratio = _ratio(_count(records, URGENCY_LEXICON), len(records))
        return UrgencyPattern(
            frequent_urgent_tasks=ratio > self.urgency_threshold,
            time_sensitive=_count(records, TIME_SENSITIVE_LEXICON) > 0,
            confidence=min(ratio + 0.4, 1.0),
            sample_size=len(records),
        )

    def _times(self, records: list[ConversationRecord]) -> TimePattern:
        hours = Counter(r.created_at.hour for r in records if r.created_at is not None)
        total = sum(hours.values())
        if not total:
            return TimePattern()

        ranked = sorted(hours.items(), key=lambda item: (-item[1], item[0]))
        peak_hours = [hour for hour, _ in ranked[:3]]
        return TimePattern(
            peak_hours=peak_hours,
            time_preference="consistent",
            confidence=max(hours.values()) / total if total > 10 else 0.5,
            sample_size=total,
        )

    def _escalations(self, records: list[ConversationRecord]) -> EscalationPattern:
        ratio = _ratio(_count(records, ESCALATION_LEXICON), len(records))
        triggers = [
            word
            for word in ESCALATION_WORDS
            if any(re.search(rf"\b{word}\b", r.content, re.IGNORECASE) for r in records)
        ]
        return EscalationPattern(
            frequent_escalations=ratio > self.escalation_threshold,
            common_triggers=triggers,
            confidence=min(ratio + 0.3, 1.0),
            sample_size=len(records),
        )

    # ------------------------------------------------------------------
    # Consumers of the analysis
    # ------------------------------------------------------------------

    def to_learning_patterns(
        self, user_id: str, patterns: Patterns
    ) -> list[LearningPattern]:
        rows = []
        for pattern_type, data in patterns.model_dump().items():
            rows.append(
                LearningPattern(
                    user_id=user_id,
                    pattern_type=pattern_type,
                    pattern_data=data,
                    trigger_keywords=trigger_keywords(data),
                    confidence=data.get("confidence", 0.5),
                    updated_at=self.clock.now(),
                )
            )
        return rows

    def suggest(self, patterns: Patterns) -> list[Suggestion]:
        """Proactive suggestions implied by the patterns."""
        suggestions: list[Suggestion] = []

        if patterns.task_completion.high_completion_rate:
            suggestions.append(
                Suggestion(
                    type="task_optimization",
                    message="Based on your completion patterns, consider breaking large tasks into smaller steps",
                    confidence=patterns.task_completion.confidence,
                    category="productivity",
                )
            )
        if patterns.communication_style.prefers_detailed:
            suggestions.append(
                Suggestion(
                    type="communication_enhancement",
                    message="Consider providing more context in task descriptions for better outcomes",
                    confidence=patterns.communication_style.confidence,
                    category="communication",
                )
            )
        if patterns.urgency.frequent_urgent_tasks:
            suggestions.append(
                Suggestion(
                    type="time_management",
                    message="Consider planning ahead to reduce urgent task frequency",
                    confidence=patterns.urgency.confidence,
                    category="time_management",
                )
            )
        if patterns.preferred_times.peak_hours:
            hours = ", ".join(str(h) for h in patterns.preferred_times.peak_hours)
            suggestions.append(
                Suggestion(
                    type="scheduling_optimization",
                    message=f"Schedule important tasks during your peak hours: {hours}",
                    confidence=patterns.preferred_times.confidence,
                    category="scheduling",
                )
            )
        return suggestions

    @staticmethod
    def recommend(patterns: Patterns) -> OversightRecommendation:
        """Escalation settings for the supervisory agent."""
        recommendation = OversightRecommendation()
        if patterns.task_completion.completion_focus:
            recommendation.monitoring_level = "high"
        if patterns.urgency.frequent_urgent_tasks:
            recommendation.escalation_threshold = "low"
        if patterns.task_completion.prefers_small_tasks:
            recommendation.task_breakdown = True
        if patterns.communication_style.prefers_brief:
            recommendation.communication_style = "brief"
        elif patterns.communication_style.prefers_detailed:
            recommendation.communication_style = "detailed"
        return recommendation


def trigger_keywords(pattern_data: dict) -> set[str]:
    """Keywords that should wake a stored pattern, derived from its flags."""
    keywords: set[str] = set()
    if pattern_data.get("high_completion_rate"):
        keywords.update({"completion", "finished", "done"})
    if pattern_data.get("prefers_brief"):
        keywords.update({"brief", "short", "quick"})
    if pattern_data.get("prefers_detailed"):
        keywords.update({"detailed", "explain", "comprehensive"})
    if pattern_data.get("frequent_urgent_tasks"):
        keywords.update({"urgent", "asap", "deadline"})
    if pattern_data.get("frequent_escalations"):
        keywords.update({"help", "stuck", "problem"})
    return keywords
