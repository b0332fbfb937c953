"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any upstream-specific payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union


@dataclass(frozen=True)
class TokenCandidate:
    """Snapshot of a token observed from a listing/search upstream."""

    id: str
    name: str
    symbol: str
    price_usd: float
    market_cap_usd: float
    volume_24h_usd: float
    liquidity_usd: float
    created_at: Optional[datetime]

    @property
    def identity_key(self) -> str:
        return self.id


@dataclass(frozen=True)
class SwapTransaction:
    """Snapshot of a swap delivered by the transaction webhook."""

    signature: str
    token_address: str
    platform: str
    in_amount: float

    @property
    def identity_key(self) -> str:
        return self.signature


CandidateEntity = Union[TokenCandidate, SwapTransaction]


@dataclass(frozen=True)
class CacheEntry:
    """Cached upstream payload with the monotonic time it was stored."""

    data: Any
    last_updated: float
