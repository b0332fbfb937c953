"""Telegram user-account notification adapter.

Sends alerts through a Telethon client, by default to the account's own
Saved Messages, for setups that do not run a bot.
"""

from __future__ import annotations

from telethon import TelegramClient, errors

from core.errors import NotifyFailure


class TelegramSavedMessagesNotifier:
    """Notifier adapter that sends messages with a logged-in Telethon client."""

    def __init__(self, client: TelegramClient, target: str = "me") -> None:
        self._client = client
        self._target = target

    async def send(self, text: str) -> None:
        """Send the formatted alert to the configured target."""

        try:
            await self._client.send_message(self._target, text, parse_mode="html", link_preview=False)
        except (errors.RPCError, ConnectionError) as exc:
            raise NotifyFailure(f"Telethon send to {self._target} failed: {exc}") from exc
