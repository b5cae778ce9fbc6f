"""Thread title synchronization configuration."""

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel

from title_sync.core.model_ref import normalize_model_ref

ThreadTitleStrategy = Literal["deterministic", "llm", "hybrid"]

STRATEGY_KEY = "THREAD_TITLE_STRATEGY"
MODEL_KEY = "THREAD_TITLE_MODEL"
TIMEOUT_KEY = "THREAD_TITLE_TIMEOUT_MS"
OVERWRITE_KEY = "THREAD_TITLE_OVERWRITE_EXISTING"

DEFAULT_TIMEOUT_MS = 12_000
MIN_TIMEOUT_MS = 1
MAX_TIMEOUT_MS = 60_000

_TRUTHY = {"1", "true", "yes"}


def normalize_strategy(raw: str | None) -> ThreadTitleStrategy:
    """Map a raw strategy value to a known strategy, defaulting to deterministic."""
    value = (raw or "").strip().lower()
    if value == "llm":
        return "llm"
    if value == "hybrid":
        return "hybrid"
    return "deterministic"


def clamp_timeout_ms(raw: int | str | None) -> int:
    """Clamp a timeout to [MIN_TIMEOUT_MS, MAX_TIMEOUT_MS].

    Non-numeric and non-positive values fall back to the default.
    """
    try:
        value = int(str(raw).strip()) if raw is not None else 0
    except ValueError:
        return DEFAULT_TIMEOUT_MS
    if value <= 0:
        return DEFAULT_TIMEOUT_MS
    return min(MAX_TIMEOUT_MS, max(MIN_TIMEOUT_MS, value))


def parse_flag(raw: str | None) -> bool:
    return (raw or "").strip().lower() in _TRUTHY


def _scope_value(scope_vars: Mapping[str, str] | None, key: str) -> str | None:
    if not scope_vars:
        return None
    value = scope_vars.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


class ThreadTitleConfig(BaseModel, frozen=True):
    """Title engine knobs.

    ``strategy``, ``model_ref``, ``timeout_ms`` and
    ``allow_overwrite_existing`` may be overridden per scope (a channel or
    account config block) through :meth:`with_scope`; the remaining
    fields are process-wide.
    """

    strategy: ThreadTitleStrategy = "deterministic"
    model_ref: str | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    allow_overwrite_existing: bool = False
    overwrite_seed_echo: bool = True
    max_chars: int = 80
    disable_on_not_found: bool = False
    pending_lease_ms: int = 60_000
    cache_max_entries: int = 5_000
    llm_failure_backoff_ms: int = 10 * 60_000
    rate_limit_retry_ms: int = 60_000
    not_found_retry_ms: int = 30 * 60_000
    unknown_retry_base_ms: int = 60_000
    unknown_retry_max_ms: int = 60 * 60_000
    min_retry_ms: int = 1_000

    @property
    def uses_llm(self) -> bool:
        return self.strategy in ("llm", "hybrid")

    def with_scope(self, scope_vars: Mapping[str, str] | None) -> "ThreadTitleConfig":
        """Return a copy with non-blank per-scope values taking precedence."""
        update: dict[str, object] = {}
        strategy = _scope_value(scope_vars, STRATEGY_KEY)
        if strategy is not None:
            update["strategy"] = normalize_strategy(strategy)
        model = _scope_value(scope_vars, MODEL_KEY)
        if model is not None:
            update["model_ref"] = normalize_model_ref(model)
        timeout = _scope_value(scope_vars, TIMEOUT_KEY)
        if timeout is not None:
            update["timeout_ms"] = clamp_timeout_ms(timeout)
        overwrite = _scope_value(scope_vars, OVERWRITE_KEY)
        if overwrite is not None:
            update["allow_overwrite_existing"] = parse_flag(overwrite)
        if not update:
            return self
        return self.model_copy(update=update)
