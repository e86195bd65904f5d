"""Shared test fixtures for the personalization engine."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from personalization.config import Settings
from personalization.errors import StoreUnavailable
from personalization.learning.engine import PreferenceEngine
from personalization.main import create_app
from personalization.memory.in_memory import (
    InMemoryConversationLog,
    InMemoryPreferenceBackend,
)
from personalization.utils.clock import ManualClock


class FailingBackend(InMemoryPreferenceBackend):
    """Backend whose every call fails as if the database were unreachable."""

    async def _fail(self, *args, **kwargs):
        raise StoreUnavailable("database unreachable")

    ping = _fail
    find_preference = _fail
    save_preference = _fail
    list_preferences = _fail
    delete_user = _fail
    replace_patterns = _fail
    list_patterns = _fail
    save_attribution = _fail
    find_attribution = _fail


class FailingConversationLog(InMemoryConversationLog):
    async def recent(self, user_id, limit, since=None):
        raise StoreUnavailable("conversation log unreachable")


@pytest.fixture
def settings() -> Settings:
    return Settings(storage_backend="memory", _env_file=None)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def backend() -> InMemoryPreferenceBackend:
    return InMemoryPreferenceBackend()


@pytest.fixture
def conversation_log() -> InMemoryConversationLog:
    return InMemoryConversationLog()


@pytest.fixture
def engine(settings, backend, conversation_log, clock) -> PreferenceEngine:
    return PreferenceEngine.from_settings(settings, backend, conversation_log, clock=clock)


@pytest.fixture
def failing_engine(settings, clock) -> PreferenceEngine:
    return PreferenceEngine.from_settings(
        settings, FailingBackend(), FailingConversationLog(), clock=clock
    )


@pytest_asyncio.fixture
async def client(settings, engine) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    app = create_app(settings=settings, engine=engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def failing_client(settings, failing_engine) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(settings=settings, engine=failing_engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
