"""Unit tests for the Telegram title provider and Bot API client."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from title_sync.clients.telegram_client import TelegramApiError, TelegramBotClient
from title_sync.providers.telegram_provider import TelegramThreadTitleProvider
from title_sync.schemas.thread_title_schema import ThreadTitleTarget


@pytest.fixture
def bot() -> MagicMock:
    client = MagicMock(spec=TelegramBotClient)
    client.edit_forum_topic = AsyncMock(return_value=True)
    return client


@pytest.fixture
def telegram(bot: MagicMock) -> TelegramThreadTitleProvider:
    return TelegramThreadTitleProvider(bot)


def topic(thread_id: str | int | None) -> ThreadTitleTarget:
    return ThreadTitleTarget(channel="telegram", conversation_id="-100555", thread_id=thread_id)


class TestTelegramProvider:
    """Forum topic keys, renames, and error handling."""

    @pytest.mark.parametrize("thread_id", [42, "42", " 42 "])
    def test_thread_key(self, telegram: TelegramThreadTitleProvider, thread_id: str | int) -> None:
        assert telegram.resolve_thread_key(topic(thread_id)) == "telegram:-100555:42"

    @pytest.mark.parametrize("thread_id", [None, 1, "abc", "0"])
    def test_general_or_invalid_topic_has_no_key(
        self, telegram: TelegramThreadTitleProvider, thread_id: str | int | None
    ) -> None:
        assert telegram.resolve_thread_key(topic(thread_id)) is None

    @pytest.mark.asyncio
    async def test_set_title_truncates_to_topic_limit(
        self, telegram: TelegramThreadTitleProvider, bot: MagicMock
    ) -> None:
        await telegram.set_title(topic(42), "x" * 200)

        bot.edit_forum_topic.assert_awaited_once_with(
            chat_id="-100555", message_thread_id=42, name="x" * 128
        )

    @pytest.mark.asyncio
    async def test_unchanged_topic_name_counts_as_applied(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={
                    "ok": False,
                    "error_code": 400,
                    "description": "Bad Request: TOPIC_NOT_MODIFIED",
                },
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            provider = TelegramThreadTitleProvider(TelegramBotClient("t", http_client=http))
            await provider.set_title(topic(42), "Fix Deploy")

    @pytest.mark.asyncio
    async def test_other_bad_request_still_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={
                    "ok": False,
                    "error_code": 400,
                    "description": "Bad Request: not enough rights to manage topics",
                },
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            provider = TelegramThreadTitleProvider(TelegramBotClient("t", http_client=http))
            with pytest.raises(TelegramApiError) as exc_info:
                await provider.set_title(topic(42), "Fix Deploy")

        assert provider.classify_error(exc_info.value) == "permission"

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (TelegramApiError("Bad Request: not enough rights to manage topics", 400), "permission"),
            (TelegramApiError("Too Many Requests: retry after 12", 429, 12), "rate_limit"),
            (TelegramApiError("Bad Request: message thread not found", 400), "not_found"),
            (TelegramApiError("Bad Request: TOPIC_NOT_MODIFIED", 400), "unknown"),
            (RuntimeError("Forbidden: bot was kicked from the supergroup chat"), "permission"),
        ],
    )
    def test_classify_error(
        self, telegram: TelegramThreadTitleProvider, error: Exception, expected: str
    ) -> None:
        assert telegram.classify_error(error) == expected

    def test_retry_after_from_parameters(self, telegram: TelegramThreadTitleProvider) -> None:
        error = TelegramApiError("Too Many Requests: retry after 12", 429, 12)
        assert telegram.retry_after_ms(error, "rate_limit") == 12_000

    @pytest.mark.asyncio
    async def test_aclose_releases_client(
        self, telegram: TelegramThreadTitleProvider, bot: MagicMock
    ) -> None:
        await telegram.aclose()
        bot.aclose.assert_awaited_once()

    def test_retry_after_from_message(self, telegram: TelegramThreadTitleProvider) -> None:
        error = RuntimeError("Flood control exceeded. Retry after 3 seconds")
        assert telegram.retry_after_ms(error, "rate_limit") == 3_000
        assert telegram.retry_after_ms(error, "unknown") is None


class TestTelegramBotClient:
    """Bot API calls over a mocked transport."""

    @pytest.mark.asyncio
    async def test_edit_forum_topic(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True, "result": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = TelegramBotClient("123:ABC", base_url="https://tg.test/", http_client=http)
            assert await client.edit_forum_topic(
                chat_id="-100555", message_thread_id=42, name="Fix Deploy"
            )

        assert str(requests[0].url) == "https://tg.test/bot123:ABC/editForumTopic"
        assert json.loads(requests[0].content) == {
            "chat_id": "-100555",
            "message_thread_id": 42,
            "name": "Fix Deploy",
        }

    @pytest.mark.asyncio
    async def test_error_response_carries_retry_after(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                429,
                json={
                    "ok": False,
                    "error_code": 429,
                    "description": "Too Many Requests: retry after 5",
                    "parameters": {"retry_after": 5},
                },
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = TelegramBotClient("t", http_client=http)
            with pytest.raises(TelegramApiError) as exc_info:
                await client.call("editForumTopic", {})

        assert exc_info.value.error_code == 429
        assert exc_info.value.retry_after == 5
        assert "retry after 5" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_json_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = TelegramBotClient("t", http_client=http)
            with pytest.raises(TelegramApiError) as exc_info:
                await client.call("editForumTopic", {})

        assert exc_info.value.error_code == 502
