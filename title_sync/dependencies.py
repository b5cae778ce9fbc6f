"""Global dependencies for the application."""

from functools import lru_cache

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI
from pydantic import SecretStr
from slack_sdk.web.async_client import AsyncWebClient

from title_sync.clients.telegram_client import TelegramBotClient
from title_sync.core.config import settings
from title_sync.core.model_ref import ModelRef
from title_sync.core.redis import get_redis
from title_sync.providers.base import ThreadTitleProvider
from title_sync.providers.slack_provider import SlackThreadTitleProvider
from title_sync.providers.telegram_provider import TelegramThreadTitleProvider
from title_sync.repositories.title_state_repo import (
    RedisThreadTitleStateRepository,
    ThreadTitleStateRepository,
)
from title_sync.services.thread_title_service import ThreadTitleService
from title_sync.services.title_service import TitleService

TITLE_MAX_TOKENS = 64


@lru_cache
def get_title_llm(ref: ModelRef, api_key: SecretStr, timeout_s: float) -> BaseChatModel:
    """Get a deterministic, short-output chat model for title generation."""
    match ref.provider:
        case "openai":
            return ChatOpenAI(
                model=ref.model,
                api_key=api_key,
                temperature=0,
                max_tokens=TITLE_MAX_TOKENS,
                timeout=timeout_s,
                max_retries=0,
            )
        case "anthropic":
            return ChatAnthropic(  # type: ignore[call-arg]
                model_name=ref.model,
                api_key=api_key,
                temperature=0,
                max_tokens=TITLE_MAX_TOKENS,
                timeout=timeout_s,
                max_retries=0,
            )
        case "google":
            return ChatGoogleGenerativeAI(
                model=ref.model,
                google_api_key=api_key,
                temperature=0,
                max_output_tokens=TITLE_MAX_TOKENS,
                timeout=timeout_s,
                max_retries=0,
            )
        case _:
            raise ValueError(f"Unsupported LLM provider: {ref.provider}")


@lru_cache
def get_title_service() -> TitleService:
    """Process-wide LLM title generator (holds the failure backoff)."""
    return TitleService(
        llm_config=settings.llm,
        model_factory=get_title_llm,
        failure_backoff_ms=settings.thread_title.llm_failure_backoff_ms,
    )


@lru_cache
def get_providers() -> dict[str, ThreadTitleProvider]:
    """Title providers for every channel with configured credentials."""
    channels = settings.channels
    providers: dict[str, ThreadTitleProvider] = {}
    if channels.slack_enabled:
        client = AsyncWebClient(token=channels.slack_bot_token.get_secret_value())
        providers["slack"] = SlackThreadTitleProvider(client)
    if channels.telegram_enabled:
        bot = TelegramBotClient(
            token=channels.telegram_bot_token.get_secret_value(),
            base_url=channels.telegram_api_url,
        )
        providers["telegram"] = TelegramThreadTitleProvider(bot)
    return providers


async def close_providers() -> None:
    """Release HTTP clients held by channel providers."""
    for provider in get_providers().values():
        close = getattr(provider, "aclose", None)
        if close is not None:
            await close()
    get_providers.cache_clear()


def get_state_repository() -> ThreadTitleStateRepository:
    """Get the Redis-backed title state repository."""
    return RedisThreadTitleStateRepository(get_redis(), settings.redis)


_thread_title_service: ThreadTitleService | None = None


def get_thread_title_service() -> ThreadTitleService:
    """Get the engine; created once so its in-flight tracking is shared."""
    global _thread_title_service  # noqa: PLW0603
    if _thread_title_service is None:
        _thread_title_service = ThreadTitleService(
            repository=get_state_repository(),
            config=settings.thread_title,
            title_service=get_title_service(),
        )
    return _thread_title_service


def reset_thread_title_service() -> None:
    """Drop the engine so the next request binds to the current Redis client."""
    global _thread_title_service  # noqa: PLW0603
    _thread_title_service = None
