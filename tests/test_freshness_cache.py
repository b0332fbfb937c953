from __future__ import annotations

import asyncio

import pytest

from core.cache import FreshnessCache


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingFetch:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> dict:
        self.calls += 1
        return {"call": self.calls}


def test_fresh_entry_skips_fetch_and_stale_entry_refetches() -> None:
    clock = FakeClock(100.0)
    cache = FreshnessCache(300.0, clock=clock)
    fetch = CountingFetch()

    first = asyncio.run(cache.get_or_fetch("X", fetch))
    clock.now += 299.999
    second = asyncio.run(cache.get_or_fetch("X", fetch))
    assert fetch.calls == 1
    assert first == second == {"call": 1}

    clock.now = 100.0 + 300.001
    third = asyncio.run(cache.get_or_fetch("X", fetch))
    assert fetch.calls == 2
    assert third == {"call": 2}


def test_keys_are_independent() -> None:
    cache = FreshnessCache(300.0, clock=FakeClock())
    fetch = CountingFetch()

    asyncio.run(cache.get_or_fetch("ticker:BTC", fetch))
    asyncio.run(cache.get_or_fetch("global", fetch))

    assert fetch.calls == 2


def test_failed_fetch_propagates_and_leaves_cache_untouched() -> None:
    clock = FakeClock(0.0)
    cache = FreshnessCache(300.0, clock=clock)

    async def seed() -> str:
        return "old"

    async def boom() -> str:
        raise RuntimeError("upstream down")

    asyncio.run(cache.get_or_fetch("X", seed))
    clock.now = 400.0

    with pytest.raises(RuntimeError, match="upstream down"):
        asyncio.run(cache.get_or_fetch("X", boom))

    entry = cache.get("X")
    assert entry is not None
    assert entry.data == "old"
    assert entry.last_updated == 0.0


def test_per_call_window_overrides_default() -> None:
    clock = FakeClock(0.0)
    cache = FreshnessCache(300.0, clock=clock)
    fetch = CountingFetch()

    asyncio.run(cache.get_or_fetch("X", fetch))
    clock.now = 10.0
    asyncio.run(cache.get_or_fetch("X", fetch, freshness_seconds=5.0))

    assert fetch.calls == 2
    assert cache.is_fresh("X")
