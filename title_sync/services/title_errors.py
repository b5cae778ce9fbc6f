"""Failure classification and retry delays for title application."""

import json
import re

from title_sync.core.settings import ThreadTitleConfig
from title_sync.schemas.thread_title_schema import ErrorClass

PERMISSION_RE = re.compile(
    r"\b403\b|missing_scope|not enough rights|forbidden|permission"
    r"|can_manage_topics|not authorized",
    re.IGNORECASE,
)
RATE_LIMIT_RE = re.compile(r"\b429\b|rate[\s_-]*limit|too many requests", re.IGNORECASE)
NOT_FOUND_RE = re.compile(
    r"thread not found|topic not found|chat not found|channel_not_found|\b404\b|not found",
    re.IGNORECASE,
)


def error_text(error: object) -> str:
    """Best textual description of an arbitrary error value."""
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    try:
        return json.dumps(error, default=str)
    except (TypeError, ValueError):
        return repr(error)


def classify_error_text(error: object) -> ErrorClass:
    """Classify an error by keyword matching when the provider cannot."""
    text = error_text(error)
    if PERMISSION_RE.search(text):
        return "permission"
    if RATE_LIMIT_RE.search(text):
        return "rate_limit"
    if NOT_FOUND_RE.search(text):
        return "not_found"
    return "unknown"


def default_retry_delay_ms(
    error_class: ErrorClass, attempts: int, config: ThreadTitleConfig
) -> int:
    """Retry delay when the provider reports none.

    Unknown failures back off exponentially per attempt up to the cap.
    Permission failures never retry and return 0.
    """
    if error_class == "permission":
        return 0
    if error_class == "rate_limit":
        return config.rate_limit_retry_ms
    if error_class == "not_found":
        return config.not_found_retry_ms
    exponential = config.unknown_retry_base_ms * 2 ** max(0, attempts - 1)
    return min(exponential, config.unknown_retry_max_ms)


def is_terminal(error_class: ErrorClass, config: ThreadTitleConfig) -> bool:
    """Whether a failure disables the thread permanently."""
    if error_class == "permission":
        return True
    return error_class == "not_found" and config.disable_on_not_found
