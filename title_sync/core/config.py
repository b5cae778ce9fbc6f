"""Application configuration using Pydantic Settings V2."""

from functools import cached_property
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from title_sync.core.model_ref import normalize_model_ref
from title_sync.core.settings import (
    AppConfig,
    ChannelConfig,
    LLMConfig,
    RedisConfig,
    ThreadTitleConfig,
)
from title_sync.core.settings.thread_title_config import (
    DEFAULT_TIMEOUT_MS,
    clamp_timeout_ms,
    normalize_strategy,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Flat fields are loaded directly from environment variables.
    Domain properties provide grouped access (e.g. settings.thread_title.strategy).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM Provider
    llm_provider: Literal["openai", "anthropic", "google"] = Field(
        default="anthropic",
        description="Default LLM provider for title generation",
    )

    # OpenAI
    openai_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model name",
    )

    # Anthropic
    anthropic_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Anthropic API key",
    )
    anthropic_model: str = Field(
        default="claude-3-5-haiku-latest",
        description="Anthropic model name",
    )

    # Google
    gemini_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Gemini API key (preferred over GOOGLE_API_KEY)",
    )
    google_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Google API key",
    )
    google_model: str = Field(
        default="gemini-2.0-flash",
        description="Google model name",
    )

    # App
    app_name: str = Field(
        default="thread-title-sync",
        description="Application name",
    )
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Debug mode",
    )
    shutdown_grace_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Seconds to wait for in-flight title attempts at shutdown",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_key_prefix: str = Field(
        default="title_sync:",
        description="Namespace prepended to every Redis key",
    )

    # Channels
    slack_bot_token: SecretStr = Field(
        default=SecretStr(""),
        description="Slack bot token (xoxb-...)",
    )
    telegram_bot_token: SecretStr = Field(
        default=SecretStr(""),
        description="Telegram bot token",
    )
    telegram_api_url: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API root URL",
    )

    # Thread titles
    thread_title_strategy: str = Field(
        default="deterministic",
        description="Title source: deterministic, llm or hybrid",
    )
    thread_title_model: str = Field(
        default="",
        description="provider/model used for LLM titles; shorthand names expand",
    )
    thread_title_timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        description="LLM title call timeout, clamped to [1, 60000]",
    )
    thread_title_overwrite_existing: bool = Field(
        default=False,
        description="Replace titles that are already set on the platform",
    )
    thread_title_overwrite_seed_echo: bool = Field(
        default=True,
        description="Replace a platform title that merely repeats the first message",
    )
    thread_title_max_chars: int = Field(
        default=80,
        ge=3,
        le=255,
        description="Maximum title length",
    )
    thread_title_disable_on_not_found: bool = Field(
        default=False,
        description="Permanently disable a thread after a not-found error",
    )
    thread_title_pending_lease_ms: int = Field(
        default=60_000,
        ge=1_000,
        description="How long a pending attempt blocks other attempts",
    )
    thread_title_cache_max_entries: int = Field(
        default=5_000,
        ge=1,
        description="Maximum in-memory title state entries",
    )
    thread_title_llm_failure_backoff_ms: int = Field(
        default=10 * 60_000,
        ge=0,
        description="Pause LLM title generation after a provider failure",
    )
    thread_title_rate_limit_retry_ms: int = Field(
        default=60_000,
        ge=1_000,
        description="Retry delay after a rate-limit error",
    )
    thread_title_not_found_retry_ms: int = Field(
        default=30 * 60_000,
        ge=1_000,
        description="Retry delay after a not-found error",
    )
    thread_title_unknown_retry_base_ms: int = Field(
        default=60_000,
        ge=1_000,
        description="Initial exponential backoff after an unknown error",
    )
    thread_title_unknown_retry_max_ms: int = Field(
        default=60 * 60_000,
        ge=1_000,
        description="Cap for the unknown-error exponential backoff",
    )

    # --- Domain properties ---

    @cached_property
    def llm(self) -> LLMConfig:
        """LLM provider configuration."""
        return LLMConfig(
            provider=self.llm_provider,
            openai_api_key=self.openai_api_key,
            openai_model=self.openai_model,
            anthropic_api_key=self.anthropic_api_key,
            anthropic_model=self.anthropic_model,
            gemini_api_key=self.gemini_api_key,
            google_api_key=self.google_api_key,
            google_model=self.google_model,
        )

    @cached_property
    def app(self) -> AppConfig:
        """Application environment configuration."""
        return AppConfig(
            name=self.app_name,
            env=self.app_env,
            debug=self.debug,
            shutdown_grace_seconds=self.shutdown_grace_seconds,
        )

    @cached_property
    def redis(self) -> RedisConfig:
        """Redis connection configuration."""
        return RedisConfig(url=self.redis_url, key_prefix=self.redis_key_prefix)

    @cached_property
    def channels(self) -> ChannelConfig:
        """Chat platform credentials."""
        return ChannelConfig(
            slack_bot_token=self.slack_bot_token,
            telegram_bot_token=self.telegram_bot_token,
            telegram_api_url=self.telegram_api_url,
        )

    @cached_property
    def thread_title(self) -> ThreadTitleConfig:
        """Thread title engine configuration (process-environment scope)."""
        return ThreadTitleConfig(
            strategy=normalize_strategy(self.thread_title_strategy),
            model_ref=normalize_model_ref(self.thread_title_model),
            timeout_ms=clamp_timeout_ms(self.thread_title_timeout_ms),
            allow_overwrite_existing=self.thread_title_overwrite_existing,
            overwrite_seed_echo=self.thread_title_overwrite_seed_echo,
            max_chars=self.thread_title_max_chars,
            disable_on_not_found=self.thread_title_disable_on_not_found,
            pending_lease_ms=self.thread_title_pending_lease_ms,
            cache_max_entries=self.thread_title_cache_max_entries,
            llm_failure_backoff_ms=self.thread_title_llm_failure_backoff_ms,
            rate_limit_retry_ms=self.thread_title_rate_limit_retry_ms,
            not_found_retry_ms=self.thread_title_not_found_retry_ms,
            unknown_retry_base_ms=self.thread_title_unknown_retry_base_ms,
            unknown_retry_max_ms=self.thread_title_unknown_retry_max_ms,
        )


def resolve_thread_title_config(
    base: Settings, scope_vars: dict[str, str] | None = None
) -> ThreadTitleConfig:
    """Resolve title config: per-scope value > process environment > default."""
    return base.thread_title.with_scope(scope_vars)


# Global settings instance
settings = Settings()
