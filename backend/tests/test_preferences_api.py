"""Tests for the preference management endpoints."""

import pytest
from httpx import AsyncClient

from personalization.models.patterns import ConversationRecord


@pytest.mark.asyncio
async def test_learn_and_list(client: AsyncClient) -> None:
    response = await client.post(
        "/api/preferences/u1/interactions",
        json={"message": "I prefer word tree format", "response": "Sure!"},
    )
    assert response.status_code == 200
    assert response.json()["interaction_ref"]

    response = await client.get("/api/preferences/u1")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["preferences"]["format"]["response_format"]["value"] == "word_tree"


@pytest.mark.asyncio
async def test_effective_context(client: AsyncClient) -> None:
    await client.post("/api/preferences/u1/interactions", json={"message": "quick one"})

    response = await client.post(
        "/api/preferences/u1/context",
        json={"model": "gpt", "temperature": 0.7, "max_tokens": 1000},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["model"] == "gpt"
    assert data["temperature"] == pytest.approx(0.3)
    assert data["max_tokens"] == 800


@pytest.mark.asyncio
async def test_feedback_roundtrip(client: AsyncClient) -> None:
    learned = await client.post("/api/preferences/u1/interactions", json={"message": "ok"})
    ref = learned.json()["interaction_ref"]

    response = await client.post(
        "/api/preferences/u1/feedback",
        json={"interaction_ref": ref, "feedback": "negative"},
    )
    assert response.status_code == 200

    prefs = (await client.get("/api/preferences/u1")).json()["preferences"]
    assert prefs["style"]["communication_style"]["confidence"] == pytest.approx(0.3)


@pytest.mark.asyncio
async def test_invalid_feedback_kind_rejected(client: AsyncClient) -> None:
    response = await client.post(
        "/api/preferences/u1/feedback",
        json={"interaction_ref": "abc", "feedback": "meh"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_explicit_update_and_reset(client: AsyncClient) -> None:
    response = await client.put(
        "/api/preferences/u1/notifications/daily_digest",
        json={"value": True, "confidence": 1.0},
    )
    assert response.status_code == 200

    prefs = (await client.get("/api/preferences/u1")).json()["preferences"]
    assert prefs["notifications"]["daily_digest"]["value"] is True

    response = await client.delete("/api/preferences/u1")
    assert response.status_code == 200
    assert (await client.get("/api/preferences/u1")).json()["preferences"] == {}


@pytest.mark.asyncio
async def test_pattern_endpoints(client: AsyncClient) -> None:
    patterns = await client.get("/api/preferences/u1/patterns")
    assert patterns.status_code == 200
    assert "task_completion" in patterns.json()

    suggestions = await client.get("/api/preferences/u1/suggestions")
    assert suggestions.json() == []

    recommendations = await client.get("/api/preferences/u1/recommendations")
    assert recommendations.json()["monitoring_level"] == "medium"


@pytest.mark.asyncio
async def test_stored_patterns_endpoint(client: AsyncClient, conversation_log, clock) -> None:
    conversation_log.add(
        "u1", ConversationRecord(content="urgent, deadline is today", created_at=clock.now())
    )
    assert (await client.get("/api/preferences/u1/patterns/stored")).json() == []

    await client.get("/api/preferences/u1/patterns")
    response = await client.get("/api/preferences/u1/patterns/stored")

    assert response.status_code == 200
    rows = {row["pattern_type"]: row for row in response.json()}
    assert rows["urgency"]["pattern_data"]["frequent_urgent_tasks"] is True
    assert "deadline" in rows["urgency"]["trigger_keywords"]
    assert rows["urgency"]["successful_applications"] == 0


@pytest.mark.asyncio
async def test_outage_never_surfaces_as_error(failing_client: AsyncClient) -> None:
    response = await failing_client.get("/api/preferences/u1")
    assert response.status_code == 200
    assert response.json()["preferences"] == {}

    response = await failing_client.post(
        "/api/preferences/u1/context", json={"temperature": 0.7}
    )
    assert response.status_code == 200
    assert response.json()["temperature"] == 0.7

    response = await failing_client.delete("/api/preferences/u1")
    assert response.status_code == 503
    assert response.json()["success"] is False
