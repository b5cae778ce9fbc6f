"""Service for generating thread titles via LLM."""

import asyncio
import re
import time
from collections.abc import Callable, Sequence

import structlog
from langchain_core.language_models import BaseChatModel
from pydantic import SecretStr

from title_sync.core.model_ref import ModelRef, normalize_model_ref, parse_model_ref
from title_sync.core.settings import LLMConfig
from title_sync.core.settings.thread_title_config import DEFAULT_TIMEOUT_MS, clamp_timeout_ms
from title_sync.services.title_candidates import (
    collapse_whitespace,
    is_default_thread_placeholder,
    normalize_prompt_source,
    strip_trailing_punctuation,
)

logger = structlog.get_logger()

SUPPORTED_PROVIDERS = frozenset({"google", "anthropic", "openai"})
SEED_MAX_CHARS = 6_000
MAX_TITLE_WORDS = 8
MIN_TITLE_CHARS = 2

TitleModelFactory = Callable[[ModelRef, SecretStr, float], BaseChatModel]

_HEADER_RE = re.compile(r"^#+\s*")
_QUOTES_RE = re.compile(r"^[\"'`]+|[\"'`]+$")
_LIST_MARKER_RE = re.compile(r"^(?:\d+[).:-]\s+|[-*]\s+)")

TITLE_EXAMPLES = (
    ("turn on the living room lights", "Turn On Lights"),
    ("can you check my recent emails", "Check Emails"),
    ("the deploy pipeline is broken", "Fix Deploy"),
    ("how should i configure nginx", "Config Nginx"),
    ("send a message to the team", "Team Message"),
    ("why does the icon look wrong", "Fix Icon"),
    ("start the migration to v2", "Migrate To V2"),
    ("cleanup after testing", "Cleanup Testing"),
    ("help me write a blog post", "Write Blog Post"),
    ("what is the weather today", "Weather Today"),
)


def now_ms() -> int:
    return int(time.time() * 1000)


def build_title_prompt(max_chars: int, source_text: str) -> str:
    """Few-shot prompt asking for a short action-oriented title."""
    lines = [
        f"Name a chat topic in 13-{max_chars} chars. Title case. Output ONLY the name.",
        "Capture the action and subject. Never abbreviate words except: "
        "API, CLI, DB, TG, CI, UI.",
        "",
    ]
    lines.extend(f'"{request}" -> "{title}"' for request, title in TITLE_EXAMPLES)
    lines.extend(["", source_text])
    return "\n".join(lines)


def content_text(content: str | list) -> str:
    """Flatten chat model content (plain string or content blocks)."""
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and isinstance(block.get("text"), str):
            parts.append(block["text"])
    return "".join(parts)


def sanitize_title_candidate(
    raw: str, max_chars: int, source_texts: Sequence[str] = ()
) -> str | None:
    """Reduce raw model output to a usable title or None."""
    first_line = next(
        (line.strip() for line in raw.splitlines() if line.strip()), None
    )
    if first_line is None:
        return None
    title = _HEADER_RE.sub("", first_line)
    title = _QUOTES_RE.sub("", title)
    title = _LIST_MARKER_RE.sub("", title)
    title = strip_trailing_punctuation(collapse_whitespace(title))
    if len(title) > max_chars:
        title = title[:max_chars].strip()
    if len(title) < MIN_TITLE_CHARS or is_default_thread_placeholder(title):
        return None
    if len(title.split()) > MAX_TITLE_WORDS:
        return None
    lowered = title.lower()
    if any(lowered == collapse_whitespace(source).lower() for source in source_texts):
        return None
    return title


class TitleService:
    """Generates concise thread titles with a chat model.

    ``generate_title`` never raises: missing configuration, provider
    errors, and timeouts all resolve to None. After a provider error or
    timeout, generation pauses for ``failure_backoff_ms`` so later
    threads do not keep hitting an unavailable provider.
    """

    def __init__(
        self,
        llm_config: LLMConfig,
        model_factory: TitleModelFactory,
        failure_backoff_ms: int = 10 * 60_000,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._llm_config = llm_config
        self._model_factory = model_factory
        self._failure_backoff_ms = failure_backoff_ms
        self._clock = clock
        self._disabled_until = 0

    @property
    def disabled_until(self) -> int:
        return self._disabled_until

    def resolve_model_ref(self, model_ref: str | None = None) -> ModelRef | None:
        """Explicit reference, else the configured default chat model."""
        raw = normalize_model_ref(model_ref) or normalize_model_ref(
            self._llm_config.default_model_ref
        )
        parsed = parse_model_ref(raw)
        if parsed is None or parsed.provider not in SUPPORTED_PROVIDERS:
            return None
        return parsed

    async def generate_title(
        self,
        primary_text: str | None,
        fallback_text: str | None,
        max_chars: int,
        model_ref: str | None = None,
        timeout_ms: int | None = None,
    ) -> str | None:
        """Summarise the seed messages into a title, or None."""
        if self._clock() < self._disabled_until:
            logger.debug("Thread title generation paused after failure")
            return None

        seeds = [
            seed
            for seed in (normalize_prompt_source(primary_text), normalize_prompt_source(fallback_text))
            if seed
        ]
        if not seeds:
            return None
        source_text = "\n\n".join(seeds)[:SEED_MAX_CHARS]

        ref = self.resolve_model_ref(model_ref)
        if ref is None:
            logger.debug("No supported model for thread titles", model_ref=model_ref)
            return None
        api_key = self._llm_config.api_key_for(ref.provider)
        if api_key is None:
            logger.debug("No API key for thread title provider", provider=ref.provider)
            return None

        prompt = build_title_prompt(max_chars, source_text)
        timeout_s = clamp_timeout_ms(timeout_ms or DEFAULT_TIMEOUT_MS) / 1000
        try:
            llm = self._model_factory(ref, api_key, timeout_s)
            async with asyncio.timeout(timeout_s):
                response = await llm.ainvoke(prompt)
        except TimeoutError:
            self._pause()
            logger.debug("Thread title generation timed out", model=str(ref))
            return None
        except Exception as e:
            self._pause()
            logger.debug("Thread title generation failed", model=str(ref), error=str(e))
            return None

        return sanitize_title_candidate(
            content_text(response.content), max_chars, source_texts=seeds
        )

    def _pause(self) -> None:
        if self._failure_backoff_ms > 0:
            self._disabled_until = self._clock() + self._failure_backoff_ms
