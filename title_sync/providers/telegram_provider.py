"""Telegram forum topic title provider."""

import re

from title_sync.clients.telegram_client import TelegramApiError, TelegramBotClient
from title_sync.schemas.thread_title_schema import ErrorClass, ThreadTitleTarget

# Telegram limits topic names to 128 characters.
MAX_TOPIC_NAME_CHARS = 128

PERMISSION_TOKENS = (
    "not enough rights",
    "forbidden",
    "have no rights",
    "can't be edited",
    "cannot edit",
    "bot was kicked",
)
RATE_LIMIT_TOKENS = ("too many requests", "retry after", "flood control", "rate limit", "429")
NOT_FOUND_TOKENS = (
    "thread not found",
    "topic not found",
    "chat not found",
    "message to edit not found",
)
NOT_MODIFIED_TOKEN = "TOPIC_NOT_MODIFIED"
RETRY_AFTER_RE = re.compile(r"retry after\s+(\d+)", re.IGNORECASE)


def _error_message(error: BaseException) -> str:
    if isinstance(error, TelegramApiError):
        return error.description
    return str(error)


def _topic_id(target: ThreadTitleTarget) -> int | None:
    """Forum topic id, or None for the General topic and non-topics."""
    if target.thread_id is None:
        return None
    try:
        topic_id = int(float(str(target.thread_id).strip()))
    except (ValueError, OverflowError):
        return None
    return topic_id if topic_id > 1 else None


class TelegramThreadTitleProvider:
    """Renames forum topics through ``editForumTopic``."""

    channel = "telegram"

    def __init__(self, client: TelegramBotClient) -> None:
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    def resolve_thread_key(self, target: ThreadTitleTarget) -> str | None:
        chat_id = (target.conversation_id or "").strip()
        topic_id = _topic_id(target)
        if not chat_id or topic_id is None:
            return None
        return f"telegram:{chat_id}:{topic_id}"

    async def set_title(self, target: ThreadTitleTarget, title: str) -> None:
        chat_id = (target.conversation_id or "").strip()
        topic_id = _topic_id(target)
        name = title.strip()[:MAX_TOPIC_NAME_CHARS]
        if not chat_id or topic_id is None or not name:
            return
        try:
            await self._client.edit_forum_topic(
                chat_id=chat_id, message_thread_id=topic_id, name=name
            )
        except TelegramApiError as e:
            # The topic already carries this name, e.g. a repeated attempt.
            if NOT_MODIFIED_TOKEN not in e.description.upper():
                raise

    def classify_error(self, error: BaseException) -> ErrorClass:
        message = _error_message(error).lower()
        if isinstance(error, TelegramApiError) and error.error_code == 429:
            return "rate_limit"
        if not message:
            return "unknown"
        if any(token in message for token in PERMISSION_TOKENS):
            return "permission"
        if any(token in message for token in RATE_LIMIT_TOKENS):
            return "rate_limit"
        if any(token in message for token in NOT_FOUND_TOKENS):
            return "not_found"
        return "unknown"

    def retry_after_ms(self, error: BaseException, error_class: ErrorClass) -> int | None:
        if error_class != "rate_limit":
            return None
        if isinstance(error, TelegramApiError) and error.retry_after:
            return error.retry_after * 1000
        match = RETRY_AFTER_RE.search(_error_message(error))
        if not match:
            return None
        seconds = int(match.group(1))
        return seconds * 1000 if seconds > 0 else None
