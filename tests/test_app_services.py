from __future__ import annotations

import asyncio

import aiohttp
import pytest

import app
import settings
from adapters.telegram_notifier import TelegramSavedMessagesNotifier


class FakeTelethonClient:
    def __init__(self) -> None:
        self.connected = False

    async def disconnect(self) -> None:
        self.connected = False


@pytest.fixture
def environment(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "markers.db"))
    monkeypatch.setenv("HELIUS_API_KEY", "helius-key")
    for name in ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHANNEL_ID", "CMC_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    built: list[FakeTelethonClient] = []

    def build_client() -> FakeTelethonClient:
        client = FakeTelethonClient()
        built.append(client)
        return client

    async def connect_authorized(client: FakeTelethonClient) -> None:
        client.connected = True

    monkeypatch.setattr(app, "build_client", build_client)
    monkeypatch.setattr(app, "connect_authorized", connect_authorized)
    return built


def _build() -> app._Services:
    async def scenario() -> app._Services:
        async with aiohttp.ClientSession() as session:
            return await app._build_services(session)

    return asyncio.run(scenario())


def test_saved_messages_starts_without_a_bot_token(environment, monkeypatch) -> None:
    monkeypatch.setattr(settings, "NOTIFICATION_METHOD", "saved_messages")

    services = _build()

    assert len(environment) == 1
    assert environment[0].connected
    assert services.telethon_client is environment[0]
    assert services.bot is None
    assert services.router is None
    assert isinstance(services.pipeline._dispatcher._notifier, TelegramSavedMessagesNotifier)


def test_saved_messages_keeps_bot_commands_when_a_token_is_set(environment, monkeypatch) -> None:
    monkeypatch.setattr(settings, "NOTIFICATION_METHOD", "saved_messages")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")

    services = _build()

    assert services.bot is not None
    assert services.router is not None
    assert isinstance(services.pipeline._dispatcher._notifier, TelegramSavedMessagesNotifier)


def test_bot_method_requires_a_token(environment, monkeypatch) -> None:
    monkeypatch.setattr(settings, "NOTIFICATION_METHOD", "bot")
    monkeypatch.setenv("TELEGRAM_CHANNEL_ID", "@alerts")

    with pytest.raises(RuntimeError, match="TELEGRAM_BOT_TOKEN"):
        _build()

    assert environment == []


def test_bot_method_delivers_through_the_bot(environment, monkeypatch) -> None:
    monkeypatch.setattr(settings, "NOTIFICATION_METHOD", "bot")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("TELEGRAM_CHANNEL_ID", "@alerts")

    services = _build()

    assert services.pipeline._dispatcher._notifier is services.bot
    assert services.router is not None
    assert environment == []
