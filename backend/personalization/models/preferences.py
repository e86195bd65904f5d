"""Preference models for the learning system."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Preference values: a closed set of kinds, discriminated on ``kind``
# ---------------------------------------------------------------------------


class TextValue(BaseModel):
    kind: Literal["text"] = "text"
    value: str

    @property
    def raw(self) -> str:
        return self.value


class FlagValue(BaseModel):
    kind: Literal["flag"] = "flag"
    value: bool

    @property
    def raw(self) -> bool:
        return self.value


class NumberValue(BaseModel):
    kind: Literal["number"] = "number"
    value: float

    @property
    def raw(self) -> float:
        return self.value


class StructValue(BaseModel):
    """Small structured object, e.g. a stored proactive suggestion."""

    kind: Literal["struct"] = "struct"
    value: dict[str, Union[str, int, float, bool, None]]

    @property
    def raw(self) -> dict[str, Any]:
        return dict(self.value)


PreferenceValue = Annotated[
    Union[TextValue, FlagValue, NumberValue, StructValue],
    Field(discriminator="kind"),
]


def wrap_value(raw: Any) -> TextValue | FlagValue | NumberValue | StructValue:
    """Build the matching value variant for a plain Python value."""
    # bool first: it is a subclass of int
    if isinstance(raw, bool):
        return FlagValue(value=raw)
    if isinstance(raw, (int, float)):
        return NumberValue(value=float(raw))
    if isinstance(raw, str):
        return TextValue(value=raw)
    if isinstance(raw, dict):
        return StructValue(value=raw)
    raise TypeError(f"Unsupported preference value type: {type(raw).__name__}")


# ---------------------------------------------------------------------------
# Signals and stored preferences
# ---------------------------------------------------------------------------


class Signal(BaseModel):
    """A single behavioral cue detected in one interaction."""

    type: str
    key: str
    value: PreferenceValue
    confidence: float = Field(ge=0.0, le=1.0)


class Preference(BaseModel):
    """The persisted belief about a user's setting for one (type, key)."""

    user_id: str
    type: str
    key: str
    value: PreferenceValue
    confidence: float = Field(ge=0.0, le=1.0)
    usage_count: int = Field(ge=1, default=1)
    last_updated: datetime = Field(default_factory=_utcnow)
    created_at: datetime = Field(default_factory=_utcnow)

    def snapshot(self) -> PreferenceSnapshot:
        return PreferenceSnapshot(
            value=self.value.raw,
            confidence=self.confidence,
            usage_count=self.usage_count,
        )


class PreferenceSnapshot(BaseModel):
    """Read-only view of a preference as served from the cache."""

    model_config = ConfigDict(frozen=True)

    value: Any
    confidence: float
    usage_count: int = 1


# type -> key -> snapshot
PreferenceSet = dict[str, dict[str, PreferenceSnapshot]]


# ---------------------------------------------------------------------------
# Interactions, attribution and feedback
# ---------------------------------------------------------------------------


class Interaction(BaseModel):
    """One user message and the assistant's response to it."""

    message: str
    response: Optional[str] = None
    timestamp: Optional[datetime] = None


class AttributedSignal(BaseModel):
    type: str
    key: str
    value: PreferenceValue


class Attribution(BaseModel):
    """Which signals a learned interaction produced, for later feedback."""

    user_id: str
    interaction_ref: str
    signals: list[AttributedSignal] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


class LearningResult(BaseModel):
    """Outcome of learning from one interaction."""

    interaction_ref: Optional[str] = None
    signals: list[Signal] = Field(default_factory=list)


class FeedbackKind(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class Feedback(BaseModel):
    """Explicit user feedback about a prior interaction."""

    interaction_ref: str
    feedback: FeedbackKind


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class PreferenceUpdateRequest(BaseModel):
    """Body for explicitly setting one preference."""

    value: Union[bool, float, str, dict[str, Union[str, int, float, bool, None]]]
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)


class PreferenceListResponse(BaseModel):
    """Response for listing a user's preferences."""

    success: bool = True
    preferences: PreferenceSet
