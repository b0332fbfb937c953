"""In-process freshness cache for read-heavy upstream queries.

One FreshnessCache is built at startup and handed to every consumer. It lives
for the process lifetime and is never persisted, so a restart starts cold.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Optional

from core.models import CacheEntry

LOGGER = logging.getLogger(__name__)

DEFAULT_FRESHNESS_SECONDS = 300.0


class FreshnessCache:
    """Map of cache key to the last successful upstream payload.

    Entries are overwritten on every successful fetch and never deleted.
    Concurrent misses for the same key may both call the fetcher; the last
    writer wins and both results are valid snapshots.
    """

    def __init__(
        self,
        freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._freshness_seconds = freshness_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def is_fresh(self, key: str, freshness_seconds: Optional[float] = None) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        window = self._freshness_seconds if freshness_seconds is None else freshness_seconds
        return self._clock() - entry.last_updated < window

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        freshness_seconds: Optional[float] = None,
    ) -> Any:
        """Return fresh cached data for key, fetching and storing it on a miss."""

        if self.is_fresh(key, freshness_seconds):
            LOGGER.debug("Cache hit for %s", key)
            return self._entries[key].data

        # A failing fetch propagates before anything is written.
        data = await fetch_fn()
        self._entries[key] = CacheEntry(data=data, last_updated=self._clock())
        LOGGER.debug("Cache refreshed for %s", key)
        return data
