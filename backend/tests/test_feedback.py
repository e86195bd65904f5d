"""Tests for explicit feedback on learned preferences."""

import pytest

from personalization.models.context import GenerationContext
from personalization.models.preferences import (
    Feedback,
    FeedbackKind,
    Interaction,
    Signal,
    TextValue,
)


async def _learn(engine, message: str) -> str:
    result = await engine.learn("u1", Interaction(message=message))
    assert result.interaction_ref is not None
    return result.interaction_ref


@pytest.mark.asyncio
async def test_positive_feedback_reinforces(engine) -> None:
    ref = await _learn(engine, "I prefer word tree format, with detail about every single step of the plan we discussed yesterday")

    await engine.incorporate("u1", Feedback(interaction_ref=ref, feedback=FeedbackKind.POSITIVE))

    preference = (await engine.get("u1"))["format"]["response_format"]
    assert preference.confidence == pytest.approx(0.82)
    assert preference.usage_count == 2


@pytest.mark.asyncio
async def test_negative_feedback_decays_to_floor(engine) -> None:
    ref = await _learn(engine, "ok")
    negative = Feedback(interaction_ref=ref, feedback=FeedbackKind.NEGATIVE)

    seen = []
    for _ in range(6):
        await engine.incorporate("u1", negative)
        seen.append((await engine.get("u1"))["style"]["communication_style"].confidence)

    assert seen == pytest.approx([0.3, 0.15, 0.075, 0.05, 0.05, 0.05])


@pytest.mark.asyncio
async def test_negative_feedback_suppresses_application(engine) -> None:
    ref = await _learn(engine, "ok")
    base = GenerationContext(temperature=0.7, max_tokens=1000)
    assert (await engine.apply("u1", base)).max_tokens == 800

    negative = Feedback(interaction_ref=ref, feedback=FeedbackKind.NEGATIVE)
    await engine.incorporate("u1", negative)
    await engine.incorporate("u1", negative)

    assert await engine.apply("u1", base) == base
    assert "communication_style" in (await engine.get("u1"))["style"]


@pytest.mark.asyncio
async def test_unknown_interaction_is_noop(engine) -> None:
    await _learn(engine, "ok")

    await engine.incorporate(
        "u1", Feedback(interaction_ref="missing", feedback=FeedbackKind.NEGATIVE)
    )

    assert (await engine.get("u1"))["style"]["communication_style"].confidence == 0.6


@pytest.mark.asyncio
async def test_feedback_skips_replaced_preference(engine) -> None:
    ref = await _learn(engine, "ok")
    await engine.update_preference(
        "u1",
        Signal(
            type="style",
            key="communication_style",
            value=TextValue(value="detailed"),
            confidence=0.9,
        ),
    )

    await engine.incorporate("u1", Feedback(interaction_ref=ref, feedback=FeedbackKind.NEGATIVE))

    assert (await engine.get("u1"))["style"]["communication_style"].confidence == 0.9


@pytest.mark.asyncio
async def test_feedback_after_reset_is_noop(engine) -> None:
    ref = await _learn(engine, "ok")
    await engine.reset("u1")

    await engine.incorporate("u1", Feedback(interaction_ref=ref, feedback=FeedbackKind.POSITIVE))

    assert await engine.get("u1") == {}


@pytest.mark.asyncio
async def test_feedback_failure_is_silent(failing_engine) -> None:
    await failing_engine.incorporate(
        "u1", Feedback(interaction_ref="abc", feedback=FeedbackKind.POSITIVE)
    )
