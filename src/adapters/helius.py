"""Helius adapter: DAS asset search and enhanced transaction webhooks.

Raw Helius payloads are parsed and validated here so the core only ever sees
TokenCandidate and SwapTransaction values. Anything that does not have the
expected shape raises MalformedUpstreamResponse instead of leaking partially
filled values downstream.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from adapters.http_fetch import FetchRequest, fetch_json
from core.config import RetryConfig
from core.errors import MalformedUpstreamResponse
from core.models import SwapTransaction, TokenCandidate

LOGGER = logging.getLogger(__name__)

HELIUS_RPC_URL = "https://mainnet.helius-rpc.com/"
WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000

SOURCE = "helius"


def _as_float(value: Any, field: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise MalformedUpstreamResponse(SOURCE, f"{field} is not numeric: {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedUpstreamResponse(SOURCE, f"{field} is not numeric: {value!r}") from None


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise MalformedUpstreamResponse(SOURCE, f"bad created_at: {value!r}") from None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise MalformedUpstreamResponse(SOURCE, f"bad created_at: {value!r}")


def parse_asset(item: Any) -> TokenCandidate:
    """Build a TokenCandidate from one DAS asset item.

    Name, symbol and price live at the top level on older responses and under
    content.metadata / token_info on current ones; both are accepted.
    """

    if not isinstance(item, dict):
        raise MalformedUpstreamResponse(SOURCE, "asset item is not an object")
    asset_id = item.get("id")
    if not isinstance(asset_id, str) or not asset_id:
        raise MalformedUpstreamResponse(SOURCE, "asset item has no id")

    metadata = _as_dict(_as_dict(item.get("content")).get("metadata"))
    token_info = _as_dict(item.get("token_info"))
    price_info = _as_dict(item.get("price_info") or token_info.get("price_info"))

    price = _as_float(price_info.get("price_per_token"), "price_per_token")
    supply = _as_float(token_info.get("supply"), "supply")
    decimals = token_info.get("decimals")
    if isinstance(decimals, int) and decimals > 0:
        supply = supply / (10 ** decimals)
    market_cap = supply * price if supply and price else 0.0

    return TokenCandidate(
        id=asset_id,
        name=str(item.get("name") or metadata.get("name") or "Unknown"),
        symbol=str(item.get("symbol") or metadata.get("symbol") or "?"),
        price_usd=price,
        market_cap_usd=market_cap,
        volume_24h_usd=_as_float(item.get("volume_24h"), "volume_24h"),
        liquidity_usd=_as_float(item.get("liquidity"), "liquidity"),
        created_at=_parse_timestamp(item.get("created_at")),
    )


def parse_search_assets(payload: Any) -> list[TokenCandidate]:
    """Parse a searchAssets JSON-RPC response into candidates, keeping order."""

    if not isinstance(payload, dict):
        raise MalformedUpstreamResponse(SOURCE, "response is not an object")
    if payload.get("error"):
        raise MalformedUpstreamResponse(SOURCE, f"RPC error: {payload['error']}")
    items = _as_dict(payload.get("result")).get("items")
    if not isinstance(items, list):
        raise MalformedUpstreamResponse(SOURCE, "result.items is missing")
    return [parse_asset(item) for item in items]


def _swap_token_address(event: dict) -> Optional[str]:
    swap = _as_dict(_as_dict(event.get("events")).get("swap"))
    for output in swap.get("tokenOutputs") or []:
        mint = _as_dict(output).get("mint")
        if mint and mint != WRAPPED_SOL_MINT:
            return mint
    for transfer in event.get("tokenTransfers") or []:
        mint = _as_dict(transfer).get("mint")
        if mint and mint != WRAPPED_SOL_MINT:
            return mint
    return None


def _swap_in_amount(event: dict) -> float:
    swap = _as_dict(_as_dict(event.get("events")).get("swap"))
    native_input = _as_dict(swap.get("nativeInput"))
    if native_input.get("amount") is not None:
        return _as_float(native_input["amount"], "nativeInput.amount") / LAMPORTS_PER_SOL
    for token_input in swap.get("tokenInputs") or []:
        raw = _as_dict(_as_dict(token_input).get("rawTokenAmount"))
        if raw.get("tokenAmount") is None:
            continue
        amount = _as_float(raw["tokenAmount"], "rawTokenAmount.tokenAmount")
        decimals = raw.get("decimals")
        if isinstance(decimals, int) and decimals > 0:
            amount = amount / (10 ** decimals)
        return amount
    return 0.0


def parse_enhanced_transactions(payload: Any) -> list[SwapTransaction]:
    """Parse an enhanced-transaction webhook body into swap transactions.

    Events that are not swaps, or swaps with no identifiable token, are
    skipped. Events without a signature make the whole body malformed.
    """

    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise MalformedUpstreamResponse(SOURCE, "webhook body is not a list")

    transactions: list[SwapTransaction] = []
    for event in payload:
        if not isinstance(event, dict):
            raise MalformedUpstreamResponse(SOURCE, "webhook event is not an object")
        signature = event.get("signature")
        if not isinstance(signature, str) or not signature:
            raise MalformedUpstreamResponse(SOURCE, "webhook event has no signature")
        if event.get("type") != "SWAP":
            LOGGER.debug("Skipping %s event %s", event.get("type"), signature)
            continue
        token_address = _swap_token_address(event)
        if not token_address:
            LOGGER.debug("Skipping swap %s with no token mint", signature)
            continue
        transactions.append(
            SwapTransaction(
                signature=signature,
                token_address=token_address,
                platform=str(event.get("source") or "UNKNOWN"),
                in_amount=_swap_in_amount(event),
            )
        )
    return transactions


class HeliusClient:
    """Search recently created fungible assets through the DAS API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str,
        retry: RetryConfig,
        limit: int = 100,
        sort_by: str = "created",
        sort_direction: str = "desc",
    ) -> None:
        self._session = session
        self._api_key = api_key
        self._retry = retry
        self._limit = limit
        self._sort_by = sort_by
        self._sort_direction = sort_direction

    def _request(self) -> FetchRequest:
        return FetchRequest(
            url=HELIUS_RPC_URL,
            method="POST",
            params={"api-key": self._api_key},
            headers={"Content-Type": "application/json"},
            json={
                "jsonrpc": "2.0",
                "id": "tokenscope",
                "method": "searchAssets",
                "params": {
                    "tokenType": "fungible",
                    "sortBy": {
                        "sortBy": self._sort_by,
                        "sortDirection": self._sort_direction,
                    },
                    "limit": self._limit,
                    "page": 1,
                },
            },
        )

    async def search_assets(self) -> list[TokenCandidate]:
        payload = await fetch_json(self._session, self._request(), self._retry)
        candidates = parse_search_assets(payload)
        LOGGER.info("Helius returned %s assets", len(candidates))
        return candidates
