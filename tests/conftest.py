"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage

from title_sync.core.settings import ThreadTitleConfig
from title_sync.repositories.title_state_repo import InMemoryThreadTitleStateRepository
from title_sync.schemas.thread_title_schema import ErrorClass, ThreadTitleTarget
from title_sync.services.thread_title_service import ThreadTitleService

# --- Test Redis (fakeredis) ---


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Create a fresh fake Redis client."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def patch_redis(
    fake_redis: fakeredis.aioredis.FakeRedis, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Patch the global redis_client used by get_redis()."""
    monkeypatch.setattr("title_sync.core.redis.redis_client", fake_redis)


# --- Clock ---


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# --- Providers ---


class FakeProvider:
    """Records set_title calls; fails with queued errors first."""

    def __init__(self, channel: str = "telegram") -> None:
        self.channel = channel
        self.calls: list[tuple[ThreadTitleTarget, str]] = []
        self.errors: list[Exception] = []

    async def set_title(self, target: ThreadTitleTarget, title: str) -> None:
        self.calls.append((target, title))
        if self.errors:
            raise self.errors.pop(0)


class ClassifyingProvider(FakeProvider):
    """Fake provider that classifies its own errors and reports retry delays."""

    def __init__(
        self,
        channel: str = "telegram",
        error_class: ErrorClass = "unknown",
        retry_after: int | None = None,
    ) -> None:
        super().__init__(channel)
        self.error_class: ErrorClass = error_class
        self.retry_after = retry_after

    def classify_error(self, error: BaseException) -> ErrorClass:
        return self.error_class

    def retry_after_ms(self, error: BaseException, error_class: ErrorClass) -> int | None:
        return self.retry_after


class TitledProvider(FakeProvider):
    """Fake provider that can report the thread's current platform title."""

    def __init__(
        self,
        channel: str = "telegram",
        current_title: str | None = None,
        lookup_error: Exception | None = None,
    ) -> None:
        super().__init__(channel)
        self.current_title = current_title
        self.lookup_error = lookup_error

    async def get_current_title(self, target: ThreadTitleTarget) -> str | None:
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.current_title


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def target() -> ThreadTitleTarget:
    return ThreadTitleTarget(channel="telegram", conversation_id="-100123", thread_id=42)


# --- Engine ---


@pytest.fixture
def title_config() -> ThreadTitleConfig:
    return ThreadTitleConfig()


@pytest.fixture
def memory_repo() -> InMemoryThreadTitleStateRepository:
    return InMemoryThreadTitleStateRepository()


@pytest.fixture
def engine(
    memory_repo: InMemoryThreadTitleStateRepository,
    title_config: ThreadTitleConfig,
    clock: FakeClock,
) -> ThreadTitleService:
    """Engine with in-memory state, deterministic titles, and a fake clock."""
    return ThreadTitleService(repository=memory_repo, config=title_config, clock=clock)


# --- Mock LLM ---


@pytest.fixture
def mock_llm() -> MagicMock:
    """Create a mock LLM for title generation."""
    mock = MagicMock(spec=BaseChatModel)
    mock.ainvoke = AsyncMock(return_value=AIMessage(content="Configure Nginx Proxy"))
    return mock


# --- App client ---


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client; dependency overrides are cleared afterwards."""
    from title_sync.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
