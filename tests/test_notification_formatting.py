from __future__ import annotations

from datetime import datetime, timezone

import pytest

from adapters.notification_formatting import (
    MAX_TICKER_MATCHES,
    format_alert,
    format_cmc_info,
    format_coinpaprika_matches,
    format_swap_alert,
    format_token_alert,
)
from core.models import SwapTransaction, TokenCandidate


def _token(name: str = "Pepe") -> TokenCandidate:
    return TokenCandidate(
        id="MintPepe",
        name=name,
        symbol="PEPE",
        price_usd=0.0000123,
        market_cap_usd=1_234_567.0,
        volume_24h_usd=89_000.0,
        liquidity_usd=45_000.0,
        created_at=datetime(2024, 3, 2, tzinfo=timezone.utc),
    )


def test_token_alert_escapes_html_and_links_the_mint() -> None:
    message = format_token_alert(_token(name="<b>Pepe</b>"))

    assert "&lt;b&gt;Pepe&lt;/b&gt; (PEPE)" in message
    assert "Market Cap: $1,234,567" in message
    assert "Created: 2024-03-02" in message
    assert "https://solscan.io/token/MintPepe" in message


def test_swap_alert_links_the_transaction() -> None:
    swap = SwapTransaction(signature="sigX", token_address="MintY", platform="RAYDIUM", in_amount=1.5)
    message = format_swap_alert(swap)

    assert "New Swap on RAYDIUM" in message
    assert "https://solscan.io/tx/sigX" in message
    assert "In: 1.5000" in message


def test_format_alert_dispatches_by_variant() -> None:
    swap = SwapTransaction(signature="sig", token_address="m", platform="JUPITER", in_amount=0)
    assert format_alert(_token()) == format_token_alert(_token())
    assert format_alert(swap) == format_swap_alert(swap)
    with pytest.raises(ValueError):
        format_alert("not an entity")


def test_cmc_info_uses_usd_quote() -> None:
    info = {
        "name": "Bitcoin",
        "symbol": "BTC",
        "cmc_rank": 1,
        "circulating_supply": 19_000_000,
        "quote": {"USD": {"price": 65000.5, "percent_change_24h": -1.234, "market_cap": 1e12, "volume_24h": 3e10}},
    }
    message = format_cmc_info(info)

    assert "<b>Bitcoin (BTC)</b>" in message
    assert "Rank: #1" in message
    assert "Price: $65,000.5000" in message
    assert "24h Change: -1.23%" in message


def test_coinpaprika_matches_symbol_or_name_and_caps_results() -> None:
    tickers = [
        {"name": f"Doge Clone {i}", "symbol": f"DC{i}", "rank": i, "quotes": {"USD": {"price": 0.1}}}
        for i in range(15)
    ]
    tickers.append({"name": "Dogecoin", "symbol": "DOGE", "rank": 8, "quotes": {"USD": {"price": 0.12}}})

    message = format_coinpaprika_matches("doge", tickers)

    assert message.count("<b>") == MAX_TICKER_MATCHES
    assert format_coinpaprika_matches("zzz", tickers) == 'No cryptocurrencies found for "zzz"'
