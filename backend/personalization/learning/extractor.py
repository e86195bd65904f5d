"""Signal Extractor - turns one interaction into candidate preference signals.

Each rule is a deterministic pattern match. Rules are independent, so any
subset may fire for a single message. The value each (type, key) pair carries:

    format.response_format       text: "word_tree"
    style.communication_style    text: "brief" | "detailed"
    priority.task_emphasis       text: "completion_focus"
    style.response_speed         text: "efficient"
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from personalization.errors import SignalExtractionError
from personalization.models.preferences import Signal, TextValue

logger = logging.getLogger(__name__)

WORD_TREE_PHRASES = ("word tree", "tree format")
EMPHASIS_WORDS = ("important", "critical", "must", "urgent", "priority")
EFFICIENCY_WORDS = ("quick", "fast", "efficient")

BRIEF_MAX_LENGTH = 50
DETAILED_MIN_LENGTH = 200


def _signal(type_: str, key: str, value: str, confidence: float) -> Signal:
    return Signal(type=type_, key=key, value=TextValue(value=value), confidence=confidence)


class SignalExtractor:
    """Extracts weighted preference signals from a message."""

    def extract(
        self,
        message: str,
        response: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> list[Signal]:
        """Return the signals detected in ``message``.

        ``response`` and ``timestamp`` are accepted for interface symmetry
        with the learning pipeline; current rules only inspect the message.
        Malformed input resolves to no signals.
        """
        try:
            return self._analyze(message)
        except SignalExtractionError as exc:
            logger.debug("No signals extracted: %s", exc)
            return []

    def _analyze(self, message: str) -> list[Signal]:
        if not isinstance(message, str):
            raise SignalExtractionError(
                f"message must be a string, got {type(message).__name__}"
            )
        lowered = message.lower().strip()
        if not lowered:
            raise SignalExtractionError("message is empty")

        signals: list[Signal] = []

        if any(phrase in lowered for phrase in WORD_TREE_PHRASES):
            signals.append(_signal("format", "response_format", "word_tree", 0.8))

        if len(message) < BRIEF_MAX_LENGTH and "?" not in message:
            signals.append(_signal("style", "communication_style", "brief", 0.6))

        if len(message) > DETAILED_MIN_LENGTH:
            signals.append(_signal("style", "communication_style", "detailed", 0.4))

        if any(word in lowered for word in EMPHASIS_WORDS):
            signals.append(_signal("priority", "task_emphasis", "completion_focus", 0.7))

        if any(word in lowered for word in EFFICIENCY_WORDS):
            signals.append(_signal("style", "response_speed", "efficient", 0.6))

        return signals
