"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel. All output is Telegram HTML.
"""

from __future__ import annotations

import html
from datetime import datetime
from typing import Any, Optional

from adapters.market_data import ExchangeData
from core.models import CandidateEntity, SwapTransaction, TokenCandidate

MAX_TICKER_MATCHES = 10


def _amount(value: Any, digits: int = 2) -> str:
    if value is None:
        return "N/A"
    try:
        return f"{float(value):,.{digits}f}"
    except (TypeError, ValueError):
        return "N/A"


def format_token_alert(token: TokenCandidate) -> str:
    """Create the alert body for a newly seen token."""

    name = html.escape(token.name)
    symbol = html.escape(token.symbol)
    address = html.escape(token.id)
    created = token.created_at.strftime("%Y-%m-%d") if token.created_at else "Unknown"

    lines = [
        "🚨 <b>New Solana Token Alert</b> 🚨",
        "",
        f"📈 {name} ({symbol})",
        f"💰 Price: ${token.price_usd:.6f}",
        f"📊 Market Cap: ${_amount(token.market_cap_usd, 0)}",
        f"💧 Liquidity: ${_amount(token.liquidity_usd, 0)}",
        f"📈 24h Volume: ${_amount(token.volume_24h_usd, 0)}",
        f"🆕 Created: {created}",
        "",
        f"🔗 <a href=\"https://jup.ag/swap/SOL-{address}\">Trade on Jupiter</a>",
        f"🔗 <a href=\"https://solscan.io/token/{address}\">View on Solscan</a>",
    ]
    return "\n".join(lines)


def format_swap_alert(swap: SwapTransaction) -> str:
    """Create the alert body for a newly seen swap transaction."""

    platform = html.escape(swap.platform)
    token = html.escape(swap.token_address)
    signature = html.escape(swap.signature)
    lines = [
        f"🔄 <b>New Swap on {platform}</b>",
        "",
        f"🪙 Token: <code>{token}</code>",
        f"💸 In: {_amount(swap.in_amount, 4)}",
        "",
        f"🔗 <a href=\"https://solscan.io/tx/{signature}\">View transaction</a>",
        f"🔗 <a href=\"https://solscan.io/token/{token}\">View token</a>",
    ]
    return "\n".join(lines)


def format_alert(entity: CandidateEntity) -> str:
    """Return the alert body for either entity variant."""

    if isinstance(entity, TokenCandidate):
        return format_token_alert(entity)
    if isinstance(entity, SwapTransaction):
        return format_swap_alert(entity)
    raise ValueError(f"Unsupported entity type: {type(entity).__name__}")


def format_cmc_info(info: dict) -> str:
    usd = info["quote"]["USD"]
    lines = [
        f"<b>{html.escape(str(info['name']))} ({html.escape(str(info['symbol']))})</b>",
        f"Rank: #{info.get('cmc_rank', 'N/A')}",
        f"Price: ${_amount(usd.get('price'), 4)}",
        f"24h Change: {_amount(usd.get('percent_change_24h'))}%",
        f"Market Cap: ${_amount(usd.get('market_cap'))}",
        f"Volume (24h): ${_amount(usd.get('volume_24h'))}",
        f"Circulating Supply: {_amount(info.get('circulating_supply'), 0)}",
    ]
    return "\n".join(lines)


def format_cmc_global(data: dict) -> str:
    usd = data.get("quote", {}).get("USD", {})
    lines = [
        "<b>Global Crypto Market</b>",
        f"📈 Total Cap: ${_amount(usd.get('total_market_cap') or 0)}",
        f"💹 24h Volume: ${_amount(usd.get('total_volume_24h') or 0)}",
        f"₿ BTC Dominance: {_amount(data.get('btc_dominance') or 0)}%",
        f"Ξ ETH Dominance: {_amount(data.get('eth_dominance') or 0)}%",
        f"🪙 Active Currencies: {data.get('active_cryptocurrencies', 'N/A')}",
        f"🏦 Active Exchanges: {data.get('active_exchanges', 'N/A')}",
    ]
    return "\n".join(lines)


def _format_updated(value: Optional[str]) -> str:
    if not value:
        return "Unknown"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M UTC")
    except ValueError:
        return html.escape(value)


def format_exchange_data(data: ExchangeData) -> str:
    markets = data.num_market_pairs if data.num_market_pairs is not None else "N/A"
    lines = [
        f"🏦 <b>{html.escape(data.name)} Overview</b>",
        "",
        f"📊 24h Volume: ${_amount(data.volume_24h)}",
        f"📈 Volume Change: {_amount(data.percent_volume_change)}%",
        f"🗓 30d Volume: ${_amount(data.volume_30d)}",
        f"🔗 Markets: {markets}",
        f"🔄 Updated: {_format_updated(data.last_updated)}",
    ]
    return "\n".join(lines)


def format_coinpaprika_matches(search_term: str, tickers: list[dict]) -> str:
    """Render up to MAX_TICKER_MATCHES tickers matching symbol or name."""

    term = search_term.upper()
    matches = [
        ticker
        for ticker in tickers
        if str(ticker.get("symbol", "")).upper() == term
        or term in str(ticker.get("name", "")).upper()
    ][:MAX_TICKER_MATCHES]

    if not matches:
        return f"No cryptocurrencies found for \"{html.escape(search_term)}\""

    blocks = []
    for ticker in matches:
        usd = (ticker.get("quotes") or {}).get("USD") or {}
        blocks.append(
            "\n".join(
                [
                    f"<b>{html.escape(str(ticker.get('name')))} ({html.escape(str(ticker.get('symbol')))})</b>",
                    f"💰 Price: ${_amount(usd.get('price'), 6)}",
                    f"📈 24h Change: {_amount(usd.get('percent_change_24h'))}%",
                    f"🏆 Rank: #{ticker.get('rank', 'N/A')}",
                ]
            )
        )
    return "\n\n".join(blocks)


def start_message(min_market_cap_usd: float) -> str:
    lines = [
        "<b>Crypto Signal Bot</b>",
        "",
        "/info &lt;symbol|rank&gt; - Get coin information",
        "/global - Overall market overview",
        "/global &lt;exchange&gt; - Specific exchange data",
        "/ticker &lt;ticker&gt; - Find crypto prices (CoinPaprika)",
        "/alert - Check for new tokens now",
        "",
        "🚨 Automatically tracks new Solana tokens with:",
        f"💰 Market Cap ≥ ${_amount(min_market_cap_usd, 0)}",
        "🔄 Swaps reported by the transaction webhook",
        "",
        "Alerts are sent to the configured channel",
    ]
    return "\n".join(lines)
