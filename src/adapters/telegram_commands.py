"""Bot command routing.

Maps Telegram Bot API updates onto command handlers. Quote and listing lookups
go through the shared FreshnessCache before reaching an upstream.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from adapters.market_data import CoinMarketCapClient, CoinPaprikaClient
from adapters.notification_formatting import (
    format_cmc_global,
    format_cmc_info,
    format_coinpaprika_matches,
    format_exchange_data,
    start_message,
)
from adapters.telegram_bot_notifier import TelegramBotNotifier
from core.cache import FreshnessCache
from core.errors import NotifyFailure

LOGGER = logging.getLogger(__name__)

GLOBAL_CACHE_KEY = "global"
COINPAPRIKA_CACHE_KEY = "coinPaprika"

GENERIC_ERROR = "⚠️ Bot encountered an error. Please try again."
GLOBAL_ERROR = (
    "⚠️ Failed to fetch exchange data. Please check the exchange name and try again.\n"
    "Example: /global binance"
)
TICKER_ERROR = "⚠️ Failed to fetch cryptocurrency data. Please try again later."


def ticker_cache_key(symbol: str) -> str:
    return f"ticker:{symbol}"


class TelegramCommandRouter:
    """Dispatch bot commands and reply in the originating chat."""

    def __init__(
        self,
        replier: TelegramBotNotifier,
        coinmarketcap: CoinMarketCapClient,
        coinpaprika: CoinPaprikaClient,
        cache: FreshnessCache,
        run_alert_check: Callable[[], Awaitable[Any]],
        min_market_cap_usd: float,
    ) -> None:
        self._replier = replier
        self._cmc = coinmarketcap
        self._paprika = coinpaprika
        self._cache = cache
        self._run_alert_check = run_alert_check
        self._min_market_cap_usd = min_market_cap_usd

    async def _reply(self, chat_id: str, text: str) -> None:
        # Reply failures are logged only; the update itself was handled.
        try:
            await self._replier.send_to(chat_id, text)
        except NotifyFailure:
            LOGGER.exception("Failed to reply in chat %s", chat_id)

    async def handle_update(self, update: dict) -> None:
        """Handle one Bot API update. Never raises."""

        message = update.get("message") if isinstance(update, dict) else None
        if not isinstance(message, dict) or not isinstance(message.get("text"), str):
            return
        chat_id = str((message.get("chat") or {}).get("id", ""))
        if not chat_id:
            return
        text = message["text"].strip()
        LOGGER.info("Processing command %r from %s", text, chat_id)

        if not text.startswith("/"):
            await self._reply(chat_id, "Unrecognized command. Type /start for help.")
            return

        parts = text.split()
        # Strip any @botname suffix that group chats append to commands.
        command = parts[0].split("@", 1)[0].lower()
        argument = parts[1] if len(parts) > 1 else ""

        try:
            if command == "/start":
                await self._reply(chat_id, start_message(self._min_market_cap_usd))
            elif command == "/info":
                await self._handle_info(chat_id, argument)
            elif command == "/global":
                await self._handle_global(chat_id, argument)
            elif command == "/ticker":
                await self._handle_ticker(chat_id, argument)
            elif command == "/alert":
                await self._run_alert_check()
            else:
                await self._reply(chat_id, "Unrecognized command. Type /start for help.")
        except Exception:
            LOGGER.exception("Command %s failed", command)
            await self._reply(chat_id, GENERIC_ERROR)

    async def _handle_info(self, chat_id: str, argument: str) -> None:
        if not argument:
            await self._reply(chat_id, "Please provide a symbol or rank")
            return

        try:
            rank = int(argument)
        except ValueError:
            rank = None

        if rank is not None:
            if rank < 1:
                await self._reply(chat_id, "Rank must be greater than 0")
                return
            data = await self._cmc.fetch_ranking(rank)
        else:
            symbol = argument.upper()
            data = await self._cache.get_or_fetch(
                ticker_cache_key(symbol), lambda: self._cmc.fetch_quote(symbol)
            )
        await self._reply(chat_id, format_cmc_info(data))

    async def _handle_global(self, chat_id: str, argument: str) -> None:
        try:
            if argument:
                await self._reply(chat_id, f"🔍 Searching for {argument}...")
                exchange = await self._cmc.fetch_exchange(argument)
                await self._reply(chat_id, format_exchange_data(exchange))
                return
            data = await self._cache.get_or_fetch(GLOBAL_CACHE_KEY, self._cmc.fetch_global)
        except Exception:
            LOGGER.exception("Global lookup failed for %r", argument)
            await self._reply(chat_id, GLOBAL_ERROR)
            return
        await self._reply(chat_id, format_cmc_global(data))

    async def _handle_ticker(self, chat_id: str, argument: str) -> None:
        if not argument:
            await self._reply(chat_id, "Please provide a search term (e.g., /ticker BTC)")
            return

        try:
            if not self._cache.is_fresh(COINPAPRIKA_CACHE_KEY):
                await self._reply(chat_id, "🔄 Fetching tickers data...")
            tickers = await self._cache.get_or_fetch(
                COINPAPRIKA_CACHE_KEY, self._paprika.fetch_tickers
            )
        except Exception:
            LOGGER.exception("Ticker lookup failed for %r", argument)
            await self._reply(chat_id, TICKER_ERROR)
            return
        await self._reply(chat_id, format_coinpaprika_matches(argument, tickers))
