"""Parsing of ``provider/model`` references for title generation."""

from dataclasses import dataclass

DEFAULT_MODEL_PROVIDER = "anthropic"

# Substring markers first, then name prefixes.
_SHORTHAND_MARKERS: dict[str, str] = {"gemini": "google", "claude": "anthropic"}
_SHORTHAND_PREFIXES: dict[str, str] = {
    "gpt-": "openai",
    "o1": "openai",
    "o3": "openai",
    "o4": "openai",
}


@dataclass(frozen=True)
class ModelRef:
    """A resolved model reference."""

    provider: str
    model: str

    def __str__(self) -> str:
        return f"{self.provider}/{self.model}"


def normalize_model_ref(raw: str | None) -> str | None:
    """Expand shorthand model names (``gemini-2.0-flash``) to ``provider/model``."""
    trimmed = (raw or "").strip()
    if not trimmed:
        return None
    if "/" in trimmed:
        return trimmed
    lower = trimmed.lower()
    for marker, provider in _SHORTHAND_MARKERS.items():
        if marker in lower:
            return f"{provider}/{trimmed}"
    for prefix, provider in _SHORTHAND_PREFIXES.items():
        if lower.startswith(prefix):
            return f"{provider}/{trimmed}"
    return trimmed


def parse_model_ref(
    raw: str | None, default_provider: str = DEFAULT_MODEL_PROVIDER
) -> ModelRef | None:
    """Split a model reference into provider and model name.

    References without a provider prefix are attributed to
    ``default_provider``. Returns None for empty input or an empty part.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        return None
    if "/" not in trimmed:
        return ModelRef(provider=default_provider, model=trimmed)
    provider, _, model = trimmed.partition("/")
    provider = provider.strip().lower()
    model = model.strip()
    if not provider or not model:
        return None
    return ModelRef(provider=provider, model=model)
