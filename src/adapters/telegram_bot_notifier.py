"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so alerts land in a channel and command replies
go back to the chat that asked.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import aiohttp

from adapters.http_fetch import FetchRequest, fetch_json
from core.config import RetryConfig
from core.errors import NotifyFailure, TransientUpstreamFailure

LOGGER = logging.getLogger(__name__)

BOT_API_BASE = "https://api.telegram.org"


class TelegramBotNotifier:
    """Notifier adapter that sends HTML messages via the Telegram Bot API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        bot_token: str,
        chat_id: str,
        retry: RetryConfig,
        api_base: str = BOT_API_BASE,
    ) -> None:
        self._session = session
        self._api_base = api_base.rstrip("/")
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._retry = retry

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{self._api_base}/bot{self._bot_token}/{method}"

    async def _call(self, method: str, payload: Optional[dict[str, Any]] = None) -> dict:
        request = FetchRequest(
            url=self._endpoint(method),
            method="POST" if payload is not None else "GET",
            json=payload,
        )
        return await fetch_json(self._session, request, self._retry)

    async def send(self, text: str) -> None:
        """Send a message to the configured alert channel."""

        await self.send_to(self._chat_id, text)

    async def send_to(self, chat_id: str, text: str) -> None:
        """Send a message to an arbitrary chat, raising NotifyFailure on error."""

        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            response = await self._call("sendMessage", payload)
        except TransientUpstreamFailure as exc:
            raise NotifyFailure(f"sendMessage to {chat_id} failed: {exc.last_error}") from exc
        if not isinstance(response, dict) or not response.get("ok", False):
            raise NotifyFailure(f"sendMessage to {chat_id} rejected: {response!r}")

    async def set_webhook(self, url: str, secret_token: Optional[str] = None) -> dict:
        payload: dict[str, Any] = {
            "url": url,
            "allowed_updates": ["message"],
            "drop_pending_updates": True,
        }
        if secret_token:
            payload["secret_token"] = secret_token
        LOGGER.info("Registering bot webhook at %s", url)
        return await self._call("setWebhook", payload)

    async def get_webhook_info(self) -> dict:
        return await self._call("getWebhookInfo")
