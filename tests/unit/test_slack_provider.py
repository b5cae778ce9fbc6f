"""Unit tests for the Slack title provider."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient
from slack_sdk.web.slack_response import SlackResponse

from title_sync.providers.base import ClassifiesErrors, ReadsCurrentTitle, ReportsRetryAfter
from title_sync.providers.slack_provider import SlackThreadTitleProvider
from title_sync.schemas.thread_title_schema import ThreadTitleTarget


def slack_error(
    data: dict, status_code: int = 200, headers: dict | None = None
) -> SlackApiError:
    response = SlackResponse(
        client=None,
        http_verb="POST",
        api_url="https://slack.com/api/assistant.threads.setTitle",
        req_args={},
        data=data,
        headers=headers or {},
        status_code=status_code,
    )
    return SlackApiError("The request to the Slack API failed.", response)


@pytest.fixture
def slack_client() -> MagicMock:
    client = MagicMock(spec=AsyncWebClient)
    client.api_call = AsyncMock()
    return client


@pytest.fixture
def slack(slack_client: MagicMock) -> SlackThreadTitleProvider:
    return SlackThreadTitleProvider(slack_client)


class TestSlackProvider:
    """Thread keys, setTitle calls, and error classification."""

    def test_capabilities(self, slack: SlackThreadTitleProvider) -> None:
        assert isinstance(slack, ClassifiesErrors)
        assert isinstance(slack, ReportsRetryAfter)
        assert not isinstance(slack, ReadsCurrentTitle)

    def test_thread_key(self, slack: SlackThreadTitleProvider) -> None:
        target = ThreadTitleTarget(channel="slack", conversation_id="D123", thread_id="1700.01")
        assert slack.resolve_thread_key(target) == "slack:D123:1700.01"

    def test_thread_key_requires_thread(self, slack: SlackThreadTitleProvider) -> None:
        target = ThreadTitleTarget(channel="slack", conversation_id="D123")
        assert slack.resolve_thread_key(target) is None

    @pytest.mark.asyncio
    async def test_set_title_calls_assistant_api(
        self, slack: SlackThreadTitleProvider, slack_client: MagicMock
    ) -> None:
        target = ThreadTitleTarget(channel="slack", conversation_id="D123", thread_id="1700.01")

        await slack.set_title(target, "  Fix Deploy ")

        slack_client.api_call.assert_awaited_once_with(
            "assistant.threads.setTitle",
            json={"channel_id": "D123", "thread_ts": "1700.01", "title": "Fix Deploy"},
        )

    @pytest.mark.parametrize(
        ("data", "status_code", "expected"),
        [
            ({"ok": False, "error": "missing_scope", "needed": "assistant:write"}, 200, "permission"),
            ({"ok": False, "error": "invalid_auth"}, 200, "permission"),
            ({"ok": False, "error": "thread_not_found"}, 200, "not_found"),
            ({"ok": False, "error": "ratelimited"}, 429, "rate_limit"),
            ({"ok": False}, 404, "not_found"),
            ({"ok": False, "error": "fatal_error"}, 500, "unknown"),
        ],
    )
    def test_classify_error(
        self,
        slack: SlackThreadTitleProvider,
        data: dict,
        status_code: int,
        expected: str,
    ) -> None:
        assert slack.classify_error(slack_error(data, status_code)) == expected

    def test_classify_plain_exception(self, slack: SlackThreadTitleProvider) -> None:
        assert slack.classify_error(RuntimeError("channel_not_found")) == "not_found"

    def test_retry_after_header(self, slack: SlackThreadTitleProvider) -> None:
        error = slack_error({"ok": False, "error": "ratelimited"}, 429, {"Retry-After": "7"})
        assert slack.retry_after_ms(error, "rate_limit") == 7_000

    def test_retry_after_missing(self, slack: SlackThreadTitleProvider) -> None:
        error = slack_error({"ok": False, "error": "ratelimited"}, 429)
        assert slack.retry_after_ms(error, "rate_limit") is None
        assert slack.retry_after_ms(RuntimeError("429"), "rate_limit") is None
