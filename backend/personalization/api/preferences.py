"""User preference management endpoints.

These routes are thin: every call goes through ``PreferenceEngine``, which
already degrades on storage failures.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from personalization.dependencies import get_engine
from personalization.learning.engine import PreferenceEngine
from personalization.models.context import GenerationContext
from personalization.models.patterns import (
    LearningPattern,
    OversightRecommendation,
    Patterns,
    Suggestion,
)
from personalization.models.preferences import (
    Feedback,
    Interaction,
    LearningResult,
    PreferenceListResponse,
    PreferenceUpdateRequest,
    Signal,
    wrap_value,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{user_id}", response_model=PreferenceListResponse)
async def list_preferences(
    user_id: str,
    engine: PreferenceEngine = Depends(get_engine),
) -> PreferenceListResponse:
    """Return all learned preferences for a user."""
    preferences = await engine.get(user_id)
    return PreferenceListResponse(preferences=preferences)


@router.delete("/{user_id}")
async def reset_preferences(
    user_id: str,
    engine: PreferenceEngine = Depends(get_engine),
) -> Any:
    """Delete every learned preference and pattern for a user."""
    if not await engine.reset(user_id):
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": "Failed to reset preferences"},
        )
    return {"success": True, "message": "All preferences have been reset"}


@router.put("/{user_id}/{preference_type}/{preference_key}")
async def update_preference(
    user_id: str,
    preference_type: str,
    preference_key: str,
    body: PreferenceUpdateRequest,
    engine: PreferenceEngine = Depends(get_engine),
) -> Any:
    """Explicitly set one preference, overriding whatever was learned."""
    signal = Signal(
        type=preference_type,
        key=preference_key,
        value=wrap_value(body.value),
        confidence=body.confidence,
    )
    if not await engine.update_preference(user_id, signal):
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": "Failed to update preference"},
        )
    return {
        "success": True,
        "message": f"Preference {preference_type}.{preference_key} updated successfully",
    }


@router.post("/{user_id}/interactions", response_model=LearningResult)
async def learn_from_interaction(
    user_id: str,
    interaction: Interaction,
    engine: PreferenceEngine = Depends(get_engine),
) -> LearningResult:
    """Learn preferences from one message/response exchange."""
    return await engine.learn(user_id, interaction)


@router.post("/{user_id}/feedback")
async def submit_feedback(
    user_id: str,
    feedback: Feedback,
    engine: PreferenceEngine = Depends(get_engine),
) -> dict[str, bool]:
    """Record explicit feedback about a prior interaction."""
    await engine.incorporate(user_id, feedback)
    return {"success": True}


@router.post("/{user_id}/context", response_model=GenerationContext)
async def effective_context(
    user_id: str,
    base: GenerationContext,
    engine: PreferenceEngine = Depends(get_engine),
) -> GenerationContext:
    """Preview the generation parameters a chat call would use."""
    return await engine.apply(user_id, base)


@router.get("/{user_id}/patterns", response_model=Patterns)
async def get_patterns(
    user_id: str,
    engine: PreferenceEngine = Depends(get_engine),
) -> Patterns:
    return await engine.analyze(user_id)


@router.get("/{user_id}/patterns/stored", response_model=list[LearningPattern])
async def get_stored_patterns(
    user_id: str,
    engine: PreferenceEngine = Depends(get_engine),
) -> list[LearningPattern]:
    """Return the patterns saved by the most recent analysis."""
    return await engine.stored_patterns(user_id)


@router.get("/{user_id}/suggestions", response_model=list[Suggestion])
async def get_suggestions(
    user_id: str,
    engine: PreferenceEngine = Depends(get_engine),
) -> list[Suggestion]:
    return await engine.suggestions(user_id)


@router.get("/{user_id}/recommendations", response_model=OversightRecommendation)
async def get_recommendations(
    user_id: str,
    engine: PreferenceEngine = Depends(get_engine),
) -> OversightRecommendation:
    return await engine.recommendations(user_id)
