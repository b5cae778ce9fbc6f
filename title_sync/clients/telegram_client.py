"""Minimal async Telegram Bot API client for forum topic management."""

from typing import Any

import httpx

DEFAULT_TIMEOUT_SECONDS = 20.0


class TelegramApiError(Exception):
    """A Bot API call answered with ``ok: false`` or an unreadable body."""

    def __init__(
        self,
        description: str,
        error_code: int | None = None,
        retry_after: int | None = None,
    ) -> None:
        self.description = description
        self.error_code = error_code
        self.retry_after = retry_after
        super().__init__(
            f"Telegram API error {error_code}: {description}"
            if error_code is not None
            else f"Telegram API error: {description}"
        )


class TelegramBotClient:
    """Calls Bot API methods with JSON bodies over a shared httpx client."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.telegram.org",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def call(self, method: str, params: dict[str, Any]) -> Any:
        """Invoke a Bot API method and return its ``result`` payload."""
        url = f"{self._base_url}/bot{self._token}/{method}"
        response = await self._http.post(url, json=params)
        try:
            body = response.json()
        except ValueError as e:
            raise TelegramApiError(
                f"non-JSON response ({response.status_code})",
                error_code=response.status_code,
            ) from e
        if not isinstance(body, dict) or not body.get("ok"):
            data = body if isinstance(body, dict) else {}
            parameters = data.get("parameters") or {}
            retry_after = parameters.get("retry_after")
            raise TelegramApiError(
                str(data.get("description") or "request failed"),
                error_code=data.get("error_code", response.status_code),
                retry_after=int(retry_after) if retry_after is not None else None,
            )
        return body.get("result")

    async def edit_forum_topic(
        self, *, chat_id: int | str, message_thread_id: int, name: str
    ) -> bool:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "message_thread_id": int(message_thread_id),
            "name": name,
        }
        return bool(await self.call("editForumTopic", params))
