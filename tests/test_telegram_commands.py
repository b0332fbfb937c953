from __future__ import annotations

import asyncio

from adapters.telegram_commands import TICKER_ERROR, TelegramCommandRouter
from core.cache import FreshnessCache
from core.errors import NotifyFailure, TransientUpstreamFailure


class FakeReplier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.replies: list[tuple[str, str]] = []

    async def send_to(self, chat_id: str, text: str) -> None:
        if self.fail:
            raise NotifyFailure("telegram down")
        self.replies.append((chat_id, text))


def _listing(symbol: str) -> dict:
    return {
        "name": f"{symbol} coin",
        "symbol": symbol,
        "cmc_rank": 3,
        "quote": {"USD": {"price": 1.0, "percent_change_24h": 0.5, "market_cap": 10, "volume_24h": 5}},
    }


class FakeCoinMarketCap:
    def __init__(self) -> None:
        self.quote_calls: list[str] = []
        self.rank_calls: list[int] = []

    async def fetch_quote(self, symbol: str) -> dict:
        self.quote_calls.append(symbol)
        return _listing(symbol)

    async def fetch_ranking(self, rank: int) -> dict:
        self.rank_calls.append(rank)
        return _listing("RNK")

    async def fetch_global(self) -> dict:
        return {"quote": {"USD": {"total_market_cap": 1, "total_volume_24h": 2}}}

    async def fetch_exchange(self, query: str):
        raise TransientUpstreamFailure("https://cmc", ConnectionError("down"))


class FakeCoinPaprika:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = 0

    async def fetch_tickers(self) -> list[dict]:
        self.calls += 1
        if self.fail:
            raise TransientUpstreamFailure("https://paprika", ConnectionError("down"))
        return [{"name": "Bitcoin", "symbol": "BTC", "rank": 1, "quotes": {"USD": {"price": 1}}}]


def _router(replier=None, paprika=None, alert_calls=None):
    async def run_alert_check() -> int:
        if alert_calls is not None:
            alert_calls.append(1)
        return 0

    cmc = FakeCoinMarketCap()
    router = TelegramCommandRouter(
        replier=replier or FakeReplier(),
        coinmarketcap=cmc,
        coinpaprika=paprika or FakeCoinPaprika(),
        cache=FreshnessCache(300.0, clock=lambda: 0.0),
        run_alert_check=run_alert_check,
        min_market_cap_usd=100_000,
    )
    return router, cmc


def _update(text: str) -> dict:
    return {"message": {"text": text, "chat": {"id": 42}}}


def test_info_by_symbol_is_served_from_cache_on_repeat() -> None:
    replier = FakeReplier()
    router, cmc = _router(replier=replier)

    asyncio.run(router.handle_update(_update("/info btc")))
    asyncio.run(router.handle_update(_update("/info BTC")))

    assert cmc.quote_calls == ["BTC"]
    assert len(replier.replies) == 2
    assert all(chat == "42" for chat, _ in replier.replies)
    assert "BTC coin" in replier.replies[0][1]


def test_info_by_rank_validates_and_skips_cache() -> None:
    replier = FakeReplier()
    router, cmc = _router(replier=replier)

    asyncio.run(router.handle_update(_update("/info 0")))
    asyncio.run(router.handle_update(_update("/info 5")))
    asyncio.run(router.handle_update(_update("/info 5")))

    assert replier.replies[0][1] == "Rank must be greater than 0"
    assert cmc.rank_calls == [5, 5]


def test_ticker_failure_replies_with_try_again_message() -> None:
    replier = FakeReplier()
    router, _ = _router(replier=replier, paprika=FakeCoinPaprika(fail=True))

    asyncio.run(router.handle_update(_update("/ticker btc")))

    assert replier.replies[-1][1] == TICKER_ERROR


def test_ticker_announces_fetch_only_on_cache_miss() -> None:
    replier = FakeReplier()
    paprika = FakeCoinPaprika()
    router, _ = _router(replier=replier, paprika=paprika)

    asyncio.run(router.handle_update(_update("/ticker btc")))
    asyncio.run(router.handle_update(_update("/ticker btc")))

    texts = [text for _, text in replier.replies]
    assert texts.count("🔄 Fetching tickers data...") == 1
    assert paprika.calls == 1


def test_global_exchange_failure_explains_usage() -> None:
    replier = FakeReplier()
    router, _ = _router(replier=replier)

    asyncio.run(router.handle_update(_update("/global nowhere")))

    assert "Example: /global binance" in replier.replies[-1][1]


def test_alert_command_runs_a_poll() -> None:
    calls: list[int] = []
    router, _ = _router(alert_calls=calls)

    asyncio.run(router.handle_update(_update("/alert")))

    assert calls == [1]


def test_plain_text_and_non_text_updates() -> None:
    replier = FakeReplier()
    router, _ = _router(replier=replier)

    asyncio.run(router.handle_update(_update("hello")))
    asyncio.run(router.handle_update({"message": {"chat": {"id": 42}, "sticker": {}}}))

    assert replier.replies == [("42", "Unrecognized command. Type /start for help.")]


def test_reply_failures_are_not_raised() -> None:
    router, _ = _router(replier=FakeReplier(fail=True))
    asyncio.run(router.handle_update(_update("/start")))
