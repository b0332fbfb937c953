"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DedupConfig:
    """Deduplication settings for the new-entity filter."""

    min_market_cap_usd: float = 100_000.0
    # None means the marker never expires.
    token_ttl_seconds: Optional[int] = None
    transaction_ttl_seconds: Optional[int] = 3600
    marker: str = "tracked"


@dataclass(frozen=True)
class RetryConfig:
    """Retry budget applied to every upstream call."""

    max_attempts: int = 3
    delay_seconds: float = 1.0
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class NotificationConfig:
    """Delivery settings consumed by the dispatcher and notifier adapters."""

    send_interval_seconds: float = 0.5
    retry_attempts: int = 2
