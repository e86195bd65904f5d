"""Preference Applier - preference set + base context -> effective context.

A pure function: nothing stored is read or written here. Rules run in a
fixed order and each sees the values produced by the rules before it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from personalization.errors import ApplicationError
from personalization.models.context import GenerationContext
from personalization.models.preferences import PreferenceSet

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000
DEFAULT_MIN_CONFIDENCE = 0.3

WORD_TREE_INSTRUCTION = "Please structure responses using word tree format when appropriate."
BRIEF_INSTRUCTION = "Please keep responses concise and to the point."
DETAILED_INSTRUCTION = "Please provide detailed and comprehensive responses."
COMPLETION_INSTRUCTION = "Emphasize task completion and progress tracking in responses."
EFFICIENCY_INSTRUCTION = "Prioritize efficiency and speed in responses."


class PreferenceApplier:
    """Turns learned preferences into generation parameters."""

    def __init__(self, min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> None:
        self.min_confidence = min_confidence

    def apply(
        self,
        preferences: PreferenceSet,
        base: Optional[GenerationContext] = None,
    ) -> GenerationContext:
        """Return a new context with ``preferences`` applied to ``base``.

        Raises:
            ApplicationError: if the preference set cannot be interpreted.
        """
        base = base or GenerationContext()
        try:
            return self._apply(preferences, base)
        except (AttributeError, TypeError, ValueError) as exc:
            raise ApplicationError(f"could not apply preferences: {exc}") from exc

    def _value(self, preferences: PreferenceSet, ptype: str, key: str) -> Any:
        snapshot = preferences.get(ptype, {}).get(key)
        if snapshot is None or snapshot.confidence < self.min_confidence:
            return None
        return snapshot.value

    def _apply(
        self, preferences: PreferenceSet, base: GenerationContext
    ) -> GenerationContext:
        updates: dict[str, Any] = {}
        instructions: list[str] = []

        def temperature() -> float:
            current = updates.get("temperature", base.temperature)
            return DEFAULT_TEMPERATURE if current is None else current

        def max_tokens() -> int:
            current = updates.get("max_tokens", base.max_tokens)
            return DEFAULT_MAX_TOKENS if current is None else current

        if self._value(preferences, "format", "response_format") == "word_tree":
            updates["response_format"] = "word_tree"
            instructions.append(WORD_TREE_INSTRUCTION)

        style = self._value(preferences, "style", "communication_style")
        if style == "brief":
            updates["temperature"] = round(max(0.3, temperature() - 0.2), 2)
            updates["max_tokens"] = min(800, max_tokens())
            instructions.append(BRIEF_INSTRUCTION)
        elif style == "detailed":
            updates["temperature"] = round(min(0.9, temperature() + 0.1), 2)
            updates["max_tokens"] = max(1200, max_tokens())
            instructions.append(DETAILED_INSTRUCTION)

        if self._value(preferences, "priority", "task_emphasis") == "completion_focus":
            instructions.append(COMPLETION_INSTRUCTION)

        if self._value(preferences, "style", "response_speed") == "efficient":
            updates["temperature"] = round(max(0.3, temperature() - 0.3), 2)
            instructions.append(EFFICIENCY_INSTRUCTION)

        if not updates and not instructions:
            return base.model_copy()

        if instructions:
            updates["system_prompt_addition"] = (base.system_prompt_addition or "") + "".join(
                f"\n{line}" for line in instructions
            )
        return base.model_copy(update=updates)
