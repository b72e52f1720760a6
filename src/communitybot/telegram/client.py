from __future__ import annotations

import re
from typing import Any, Protocol

import httpx

from ..logging import get_logger

logger = get_logger(__name__)


class TelegramTransportError(RuntimeError):
    def __init__(self, method: str, description: str) -> None:
        self.method = method
        self.description = description
        super().__init__(f"{method} failed: {description}")


class TelegramRetryAfter(TelegramTransportError):
    def __init__(self, retry_after: float, method: str = "unknown") -> None:
        self.retry_after = retry_after
        super().__init__(method, f"rate limited, retry after {retry_after}s")


class BotClient(Protocol):
    async def close(self) -> None: ...

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 50,
        allowed_updates: list[str] | None = None,
    ) -> list[dict] | None: ...

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
        disable_notification: bool | None = False,
    ) -> dict | None: ...

    async def send_media_group(
        self,
        chat_id: int,
        media: list[dict[str, Any]],
        reply_to_message_id: int | None = None,
    ) -> list[dict] | None: ...

    async def export_chat_invite_link(self, chat_id: int) -> str: ...

    async def get_me(self) -> dict | None: ...


_RETRY_AFTER_RE = re.compile(r"retry after (\d+)", re.IGNORECASE)


def _retry_after_from_payload(payload: dict[str, Any]) -> float | None:
    params = payload.get("parameters")
    if isinstance(params, dict):
        retry_after = params.get("retry_after")
        if isinstance(retry_after, (int, float)):
            return float(retry_after)
    description = payload.get("description")
    if isinstance(description, str):
        return _retry_after_from_description(description)
    return None


def _retry_after_from_description(description: str) -> float | None:
    match = _RETRY_AFTER_RE.search(description)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def _retry_after_from_response(resp: httpx.Response) -> float | None:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        retry_after = _retry_after_from_payload(payload)
        if retry_after is not None:
            return retry_after
    return _retry_after_from_description(resp.text)


class TelegramClient:
    def __init__(
        self,
        token: str,
        timeout_s: float = 120,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"https://api.telegram.org/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, json_data: dict[str, Any]) -> Any:
        """Call a Bot API method, raising ``TelegramTransportError`` on failure."""
        logger.debug("telegram.request", method=method, payload=json_data)
        try:
            resp = await self._client.post(f"{self._base}/{method}", json=json_data)
        except httpx.HTTPError as e:
            logger.error(
                "telegram.network_error",
                method=method,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise TelegramTransportError(method, str(e)) from e

        if resp.status_code == 429:
            retry_after = _retry_after_from_response(resp)
            if retry_after is not None:
                logger.info(
                    "telegram.rate_limited",
                    method=method,
                    status=resp.status_code,
                    retry_after=retry_after,
                )
                raise TelegramRetryAfter(retry_after, method)

        try:
            payload = resp.json()
        except ValueError as e:
            logger.error(
                "telegram.bad_response",
                method=method,
                status=resp.status_code,
                error=str(e),
                body=resp.text,
            )
            raise TelegramTransportError(method, "response is not JSON") from e

        if not isinstance(payload, dict):
            logger.error("telegram.invalid_payload", method=method, payload=payload)
            raise TelegramTransportError(method, "response is not an object")

        if not payload.get("ok"):
            retry_after = _retry_after_from_payload(payload)
            if retry_after is not None:
                logger.info(
                    "telegram.rate_limited", method=method, retry_after=retry_after
                )
                raise TelegramRetryAfter(retry_after, method)
            description = payload.get("description")
            logger.error(
                "telegram.api_error",
                method=method,
                status=resp.status_code,
                payload=payload,
            )
            raise TelegramTransportError(
                method,
                description
                if isinstance(description, str)
                else f"HTTP {resp.status_code}",
            )

        logger.debug("telegram.response", method=method, payload=payload)
        return payload.get("result")

    async def _post(self, method: str, json_data: dict[str, Any]) -> Any | None:
        try:
            return await self._call(method, json_data)
        except TelegramRetryAfter:
            raise
        except TelegramTransportError:
            return None

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 50,
        allowed_updates: list[str] | None = None,
    ) -> list[dict] | None:
        params: dict[str, Any] = {"timeout": timeout_s}
        if offset is not None:
            params["offset"] = offset
        if allowed_updates is not None:
            params["allowed_updates"] = allowed_updates
        result = await self._post("getUpdates", params)
        return result if isinstance(result, list) else None

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
        disable_notification: bool | None = False,
    ) -> dict | None:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
        }
        if disable_notification is not None:
            params["disable_notification"] = disable_notification
        if reply_to_message_id is not None:
            params["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        result = await self._post("sendMessage", params)
        return result if isinstance(result, dict) else None

    async def send_media_group(
        self,
        chat_id: int,
        media: list[dict[str, Any]],
        reply_to_message_id: int | None = None,
    ) -> list[dict] | None:
        params: dict[str, Any] = {"chat_id": chat_id, "media": media}
        if reply_to_message_id is not None:
            params["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        result = await self._post("sendMediaGroup", params)
        return result if isinstance(result, list) else None

    async def export_chat_invite_link(self, chat_id: int) -> str:
        result = await self._call("exportChatInviteLink", {"chat_id": chat_id})
        if not isinstance(result, str) or not result.strip():
            raise TelegramTransportError(
                "exportChatInviteLink", "no invite link in response"
            )
        return result

    async def get_me(self) -> dict | None:
        result = await self._post("getMe", {})
        return result if isinstance(result, dict) else None
