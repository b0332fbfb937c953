"""Market data adapters for the on-demand bot commands.

CoinMarketCap serves quotes, rankings, global metrics and exchange data;
CoinPaprika serves the full ticker list used for free-text search. Each
response is checked for the fields the formatters rely on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from adapters.http_fetch import FetchRequest, fetch_json
from core.config import RetryConfig
from core.errors import MalformedUpstreamResponse

LOGGER = logging.getLogger(__name__)

CMC_BASE_URL = "https://pro-api.coinmarketcap.com"
COINPAPRIKA_TICKERS_URL = "https://api.coinpaprika.com/v1/tickers"


@dataclass(frozen=True)
class ExchangeData:
    """Normalized exchange overview built from the map and quotes endpoints."""

    id: int
    name: str
    slug: str
    num_market_pairs: Optional[int]
    volume_24h: float
    volume_7d: float
    volume_30d: float
    percent_volume_change: float
    last_updated: Optional[str]


def _require_listing(info: Any, source: str) -> dict:
    if not isinstance(info, dict):
        raise MalformedUpstreamResponse(source, "listing is not an object")
    usd = (info.get("quote") or {}).get("USD")
    if not info.get("name") or not info.get("symbol") or not isinstance(usd, dict):
        raise MalformedUpstreamResponse(source, "listing lacks name, symbol or USD quote")
    if usd.get("price") is None:
        raise MalformedUpstreamResponse(source, "listing has no USD price")
    return info


class CoinMarketCapClient:
    """Thin CoinMarketCap Pro API client."""

    source = "coinmarketcap"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str,
        retry: RetryConfig,
        base_url: str = CMC_BASE_URL,
    ) -> None:
        self._session = session
        self._api_key = api_key
        self._retry = retry
        self._base_url = base_url.rstrip("/")

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict:
        request = FetchRequest(
            url=f"{self._base_url}{path}",
            headers={"X-CMC_PRO_API_KEY": self._api_key, "Accept": "application/json"},
            params=params,
        )
        payload = await fetch_json(self._session, request, self._retry)
        if not isinstance(payload, dict) or "data" not in payload:
            raise MalformedUpstreamResponse(self.source, f"{path} response has no data")
        return payload

    async def fetch_quote(self, symbol: str) -> dict:
        payload = await self._get("/v2/cryptocurrency/quotes/latest", {"symbol": symbol})
        matches = (payload["data"] or {}).get(symbol)
        if not matches:
            raise MalformedUpstreamResponse(self.source, f"no quote for {symbol}")
        return _require_listing(matches[0], self.source)

    async def fetch_ranking(self, rank: int) -> dict:
        payload = await self._get(
            "/v1/cryptocurrency/listings/latest", {"start": rank, "limit": 1}
        )
        listings = payload["data"]
        if not isinstance(listings, list) or not listings:
            raise MalformedUpstreamResponse(self.source, f"no listing at rank {rank}")
        return _require_listing(listings[0], self.source)

    async def fetch_global(self) -> dict:
        payload = await self._get("/v1/global-metrics/quotes/latest")
        data = payload["data"]
        if not isinstance(data, dict) or not isinstance((data.get("quote") or {}).get("USD"), dict):
            raise MalformedUpstreamResponse(self.source, "global metrics lack a USD quote")
        return data

    async def fetch_exchange(self, query: str) -> ExchangeData:
        search = await self._get(
            "/v1/exchange/map", {"listing_status": "active", "slug": query.lower()}
        )
        matches = search["data"]
        if not isinstance(matches, list) or not matches or not matches[0].get("id"):
            raise MalformedUpstreamResponse(self.source, f"exchange {query!r} not found")
        exchange = matches[0]
        exchange_id = exchange["id"]

        quotes = await self._get("/v1/exchange/quotes/latest", {"id": exchange_id})
        detail = (quotes["data"] or {}).get(str(exchange_id))
        usd = ((detail or {}).get("quote") or {}).get("USD")
        if not isinstance(usd, dict):
            raise MalformedUpstreamResponse(self.source, f"exchange {exchange_id} has no USD quote")

        return ExchangeData(
            id=exchange_id,
            name=str(exchange.get("name") or query),
            slug=str(exchange.get("slug") or query.lower()),
            num_market_pairs=detail.get("num_market_pairs"),
            volume_24h=float(usd.get("volume_24h") or 0),
            volume_7d=float(usd.get("volume_7d") or 0),
            volume_30d=float(usd.get("volume_30d") or 0),
            percent_volume_change=float(usd.get("percent_change_volume_24h") or 0),
            last_updated=detail.get("last_updated"),
        )


class CoinPaprikaClient:
    """CoinPaprika public ticker list."""

    source = "coinpaprika"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        retry: RetryConfig,
        tickers_url: str = COINPAPRIKA_TICKERS_URL,
    ) -> None:
        self._session = session
        self._retry = retry
        self._tickers_url = tickers_url

    async def fetch_tickers(self) -> list[dict]:
        payload = await fetch_json(
            self._session, FetchRequest(url=self._tickers_url), self._retry
        )
        if not isinstance(payload, list):
            raise MalformedUpstreamResponse(self.source, "ticker response is not a list")
        LOGGER.info("CoinPaprika returned %s tickers", len(payload))
        return payload
