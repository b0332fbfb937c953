"""Telethon client helpers for the saved-messages notifier.

Only needed when notification_method is "saved_messages"; the bot method
talks to the Bot API directly. Login is a separate, interactive step
(`tokenscope login`) so the long-running service never blocks on a prompt.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient

LOGGER = logging.getLogger(__name__)


def build_client() -> TelegramClient:
    """Create a Telethon client from API_ID/API_HASH/SESSION_NAME env vars."""

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "tokenscope")

    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    return TelegramClient(session_name, int(api_id), api_hash)


async def connect_authorized(client: TelegramClient) -> None:
    """Connect with an existing session, failing if it was never authorized."""

    await client.connect()
    if not await client.is_user_authorized():
        await client.disconnect()
        raise RuntimeError("Telegram session is not authorized; run `tokenscope login` first")
    LOGGER.info("Telegram user session connected")


async def login(client: TelegramClient) -> None:
    """Interactively authorize the session (phone code, then 2FA if set)."""

    await client.start(phone=lambda: os.getenv("PHONE") or input("Phone number: ").strip())
    me = await client.get_me()
    LOGGER.info("Logged in as %s", getattr(me, "first_name", None) or me.id)
    await client.disconnect()
