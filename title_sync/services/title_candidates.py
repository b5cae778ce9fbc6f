"""Deterministic title extraction from raw message text."""

import re

SLASH_COMMAND_RE = re.compile(r"^/[a-z0-9_]+(?:\s|$)", re.IGNORECASE)
LOW_SIGNAL_RE = re.compile(r"^(?:hi|hello|hey|yo|ok|okay|test|ping)$", re.IGNORECASE)
CONTROL_COMMAND_RE = re.compile(
    r"^(?:stop|cancel|abort|reset|new|restart|status|help|continue|retry|pause"
    r"|resume|clear|undo|compact|think|verbose|reasoning|model)"
    r"(?:\s+(?:please|now))?$",
    re.IGNORECASE,
)

MENTION_RE = re.compile(r"<@[^>]+>")
MESSAGE_ID_RE = re.compile(r"\[[^\]]*message id:[^\]]*\]", re.IGNORECASE)
STICKER_PLACEHOLDER_RE = re.compile(r"^\[Sticker(?: [^\]]+)?\](?:\s+.*)?$", re.IGNORECASE)
MEDIA_PLACEHOLDER_RE = re.compile(r"<media:[^>]+>(?:\s*\([^)]*\))?", re.IGNORECASE)
SLACK_MEDIA_PLACEHOLDER_RE = re.compile(
    r"\[(?:Slack file|Forwarded image|attached)(?::\s*[^\]]+)?\]", re.IGNORECASE
)
ATTACHMENT_PLACEHOLDER_RE = re.compile(
    r"\[(?:Image|Photo|Video|Audio|Voice message|Document|File)(?::\s*[^\]]+)?\]",
    re.IGNORECASE,
)
SLACK_THREAD_PREFIX_RE = re.compile(r"^slack thread\s+", re.IGNORECASE)
LEADING_PUNCTUATION_RE = re.compile(r"^[\s\-:;,.!?]+")
TRAILING_PUNCTUATION_RE = re.compile(r"[;:,.!?]+$")
WHITESPACE_RE = re.compile(r"\s+")

MIN_TITLE_CHARS = 3

DEFAULT_THREAD_PLACEHOLDERS = frozenset(
    {
        "new conversation",
        "new chat",
        "new thread",
        "new topic",
        "untitled",
        "untitled thread",
        "general",
        "no title",
        "thread",
        "conversation",
        "topic",
    }
)


def collapse_whitespace(value: str) -> str:
    return WHITESPACE_RE.sub(" ", value).strip()


def strip_trailing_punctuation(value: str) -> str:
    return TRAILING_PUNCTUATION_RE.sub("", value).strip()


def strip_annotations(value: str) -> str:
    """Remove user mentions and message-id annotations."""
    value = MENTION_RE.sub(" ", value)
    value = MESSAGE_ID_RE.sub(" ", value)
    return collapse_whitespace(value)


def strip_media_placeholders(value: str) -> str:
    """Drop media, sticker, and file placeholder tokens, keeping human text.

    A message that is only a sticker marker yields an empty string.
    """
    trimmed = value.strip()
    if not trimmed or STICKER_PLACEHOLDER_RE.match(trimmed):
        return ""
    trimmed = MEDIA_PLACEHOLDER_RE.sub(" ", trimmed)
    trimmed = SLACK_MEDIA_PLACEHOLDER_RE.sub(" ", trimmed)
    trimmed = ATTACHMENT_PLACEHOLDER_RE.sub(" ", trimmed)
    return collapse_whitespace(trimmed)


def is_control_command_message(text: str) -> bool:
    """Whether text is a bare bot control command such as ``stop``."""
    return bool(CONTROL_COMMAND_RE.match(strip_trailing_punctuation(text.strip())))


def is_default_thread_placeholder(title: str | None) -> bool:
    """Whether a platform title is a default name rather than a chosen one."""
    if not title:
        return False
    normalized = collapse_whitespace(title).lower()
    return normalized in DEFAULT_THREAD_PLACEHOLDERS


def _title_from_source(source: str | None, max_chars: int) -> str | None:
    if not isinstance(source, str) or not source.strip():
        return None

    title = strip_annotations(source)
    if not title or SLASH_COMMAND_RE.match(title):
        return None

    title = SLACK_THREAD_PREFIX_RE.sub("", title)
    title = LEADING_PUNCTUATION_RE.sub("", title).strip()
    if not title or LOW_SIGNAL_RE.match(title):
        return None

    title = strip_media_placeholders(title)
    title = strip_trailing_punctuation(title)
    if not title or is_control_command_message(title):
        return None

    if len(title) > max_chars:
        title = title[:max_chars].strip()
    title = strip_trailing_punctuation(title)
    if len(title) < MIN_TITLE_CHARS:
        return None
    return title


def derive_conversation_title(
    primary_text: str | None = None,
    fallback_text: str | None = None,
    max_chars: int = 80,
) -> str | None:
    """Derive a title from the first usable candidate text.

    ``primary_text`` is tried before ``fallback_text``. Returns None when
    neither yields a title, in which case the caller skips titling.
    """
    limit = max(1, int(max_chars))
    for source in (primary_text, fallback_text):
        title = _title_from_source(source, limit)
        if title:
            return title
    return None


def normalize_prompt_source(value: str | None) -> str | None:
    """Clean message text for use as an LLM prompt seed.

    Commands, sticker-only messages, and default placeholders are dropped.
    """
    if not isinstance(value, str):
        return None
    text = strip_annotations(value)
    if not text:
        return None
    if (
        is_default_thread_placeholder(text)
        or SLASH_COMMAND_RE.match(text)
        or is_control_command_message(text)
    ):
        return None
    text = strip_media_placeholders(text)
    return text or None
