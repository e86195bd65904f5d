"""Behavioral pattern models produced by the pattern analyzer."""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class ConversationRecord(BaseModel):
    """One logged conversation message."""

    content: str = ""
    message_type: str = "user_message"
    created_at: Optional[datetime] = None


class TaskCompletionPattern(BaseModel):
    high_completion_rate: bool = False
    completion_focus: bool = False
    prefers_small_tasks: bool = False
    confidence: float = 0.0
    sample_size: int = 0


class CommunicationPattern(BaseModel):
    prefers_brief: bool = False
    prefers_detailed: bool = False
    asks_many_questions: bool = False
    direct_communication: bool = False
    confidence: float = 0.0
    sample_size: int = 0


class UrgencyPattern(BaseModel):
    frequent_urgent_tasks: bool = False
    time_sensitive: bool = False
    confidence: float = 0.0
    sample_size: int = 0


class TimePattern(BaseModel):
    peak_hours: list[int] = Field(default_factory=list)
    time_preference: Literal["consistent", "flexible"] = "flexible"
    confidence: float = 0.5
    sample_size: int = 0


class EscalationPattern(BaseModel):
    frequent_escalations: bool = False
    common_triggers: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    sample_size: int = 0


class Patterns(BaseModel):
    """All coarse patterns derived from one conversation window."""

    task_completion: TaskCompletionPattern = Field(default_factory=TaskCompletionPattern)
    communication_style: CommunicationPattern = Field(default_factory=CommunicationPattern)
    urgency: UrgencyPattern = Field(default_factory=UrgencyPattern)
    preferred_times: TimePattern = Field(default_factory=TimePattern)
    escalation_triggers: EscalationPattern = Field(default_factory=EscalationPattern)


class LearningPattern(BaseModel):
    """A stored pattern row, replaced wholesale on every analysis."""

    user_id: str
    pattern_type: str
    pattern_data: dict[str, Any] = Field(default_factory=dict)
    trigger_keywords: set[str] = Field(default_factory=set)
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)
    successful_applications: int = 0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Suggestion(BaseModel):
    """A proactive suggestion surfaced to the user."""

    type: str
    message: str
    confidence: float
    category: str


class OversightRecommendation(BaseModel):
    """Configuration advice for the supervisory agent."""

    monitoring_level: Literal["low", "medium", "high"] = "medium"
    escalation_threshold: Literal["low", "medium", "high"] = "medium"
    proactive_suggestions: bool = True
    personalized_reminders: bool = True
    task_breakdown: bool = False
    communication_style: Literal["brief", "balanced", "detailed"] = "balanced"
