from __future__ import annotations

import asyncio
from typing import Callable

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from adapters.telegram_bot_notifier import TelegramBotNotifier
from core.config import RetryConfig
from core.errors import NotifyFailure, TransientUpstreamFailure

TOKEN = "123:abc"


def _app(reply: Callable[[], web.Response], received: list[dict]) -> web.Application:
    async def send_message(request: web.Request) -> web.Response:
        received.append(await request.json())
        return reply()

    app = web.Application()
    app.router.add_post(f"/bot{TOKEN}/sendMessage", send_message)
    return app


async def _send(app: web.Application, chat_id: str = "", text: str = "hello") -> None:
    async with TestServer(app) as server:
        async with aiohttp.ClientSession() as session:
            notifier = TelegramBotNotifier(
                session,
                bot_token=TOKEN,
                chat_id="@alerts",
                retry=RetryConfig(max_attempts=2, delay_seconds=0, timeout_seconds=5),
                api_base=str(server.make_url("/")),
            )
            if chat_id:
                await notifier.send_to(chat_id, text)
            else:
                await notifier.send(text)


def test_send_posts_html_message_to_the_alert_channel() -> None:
    received: list[dict] = []
    app = _app(lambda: web.json_response({"ok": True, "result": {}}), received)

    asyncio.run(_send(app, text="<b>new token</b>"))

    assert received == [
        {
            "chat_id": "@alerts",
            "text": "<b>new token</b>",
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
    ]


def test_send_to_targets_the_given_chat() -> None:
    received: list[dict] = []
    app = _app(lambda: web.json_response({"ok": True}), received)

    asyncio.run(_send(app, chat_id="42"))

    assert received[0]["chat_id"] == "42"


def test_rejected_reply_raises_notify_failure() -> None:
    received: list[dict] = []
    app = _app(
        lambda: web.json_response({"ok": False, "description": "chat not found"}), received
    )

    with pytest.raises(NotifyFailure) as excinfo:
        asyncio.run(_send(app, chat_id="42"))

    assert "rejected" in str(excinfo.value)
    # A well-formed rejection is not retried.
    assert len(received) == 1


def test_exhausted_retries_raise_notify_failure_with_cause() -> None:
    received: list[dict] = []
    app = _app(lambda: web.Response(status=502, text="bad gateway"), received)

    with pytest.raises(NotifyFailure) as excinfo:
        asyncio.run(_send(app, chat_id="42"))

    assert isinstance(excinfo.value.__cause__, TransientUpstreamFailure)
    assert len(received) == 2
