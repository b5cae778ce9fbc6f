"""Slack assistant thread title provider."""

from collections.abc import Mapping
from typing import Any

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from title_sync.schemas.thread_title_schema import ErrorClass, ThreadTitleTarget

SET_TITLE_METHOD = "assistant.threads.setTitle"

PERMISSION_TOKENS = (
    "missing_scope",
    "not_allowed_token_type",
    "not_authed",
    "invalid_auth",
    "account_inactive",
    "forbidden",
    "access_denied",
)
NOT_FOUND_TOKENS = ("thread_not_found", "channel_not_found", "message_not_found", "not_found")
RATE_LIMIT_TOKENS = ("rate_limited", "ratelimited", "429", "too many requests")
_STATUS_TOKENS = {403: "forbidden", 404: "not_found", 429: "429"}


def _response_data(error: BaseException) -> Mapping[str, Any]:
    response = getattr(error, "response", None)
    data = getattr(response, "data", None)
    return data if isinstance(data, Mapping) else {}


def _response_headers(error: BaseException) -> Mapping[str, Any]:
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    return headers if isinstance(headers, Mapping) else {}


def _error_candidates(error: BaseException) -> list[str]:
    data = _response_data(error)
    candidates = [
        data.get("error"),
        data.get("needed"),
        getattr(error, "code", None),
        str(error),
    ]
    status_code = getattr(getattr(error, "response", None), "status_code", None)
    candidates.append(_STATUS_TOKENS.get(status_code))
    return [value.lower() for value in candidates if isinstance(value, str) and value]


class SlackThreadTitleProvider:
    """Sets titles on Slack assistant threads."""

    channel = "slack"

    def __init__(self, client: AsyncWebClient) -> None:
        self._client = client

    def resolve_thread_key(self, target: ThreadTitleTarget) -> str | None:
        channel_id = (target.conversation_id or "").strip()
        thread_ts = target.thread_id_text
        if not channel_id or not thread_ts:
            return None
        return f"slack:{channel_id}:{thread_ts}"

    async def set_title(self, target: ThreadTitleTarget, title: str) -> None:
        channel_id = (target.conversation_id or "").strip()
        thread_ts = target.thread_id_text
        trimmed = title.strip()
        if not channel_id or not thread_ts or not trimmed:
            return
        await self._client.api_call(
            SET_TITLE_METHOD,
            json={"channel_id": channel_id, "thread_ts": thread_ts, "title": trimmed},
        )

    def classify_error(self, error: BaseException) -> ErrorClass:
        candidates = _error_candidates(error)
        if any(token in value for value in candidates for token in PERMISSION_TOKENS):
            return "permission"
        if any(token in value for value in candidates for token in NOT_FOUND_TOKENS):
            return "not_found"
        if any(token in value for value in candidates for token in RATE_LIMIT_TOKENS):
            return "rate_limit"
        return "unknown"

    def retry_after_ms(self, error: BaseException, error_class: ErrorClass) -> int | None:
        """Honour Slack's ``Retry-After`` header (seconds) when present."""
        if not isinstance(error, SlackApiError):
            return None
        headers = _response_headers(error)
        raw = headers.get("retry-after", headers.get("Retry-After"))
        if isinstance(raw, list):
            raw = raw[0] if raw else None
        try:
            seconds = int(str(raw).strip()) if raw is not None else 0
        except ValueError:
            return None
        return seconds * 1000 if seconds > 0 else None
