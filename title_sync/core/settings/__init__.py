"""Domain-specific configuration models."""

from title_sync.core.settings.app_config import AppConfig
from title_sync.core.settings.channel_config import ChannelConfig
from title_sync.core.settings.llm_config import LLMConfig
from title_sync.core.settings.redis_config import RedisConfig
from title_sync.core.settings.thread_title_config import (
    ThreadTitleConfig,
    ThreadTitleStrategy,
)

__all__ = [
    "AppConfig",
    "ChannelConfig",
    "LLMConfig",
    "RedisConfig",
    "ThreadTitleConfig",
    "ThreadTitleStrategy",
]
