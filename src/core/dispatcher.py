"""Alert dispatch with per-item isolation and a minimum send interval."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, Optional

from core.models import CandidateEntity
from core.ports import NotifierPort

LOGGER = logging.getLogger(__name__)


class Throttle:
    """Enforce a minimum interval between consecutive calls to wait()."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None
        # Overlapping dispatches (poll loop and webhook batch) queue here.
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            if self._last is not None:
                remaining = self._last + self._min_interval - self._clock()
                if remaining > 0:
                    await self._sleep(remaining)
            self._last = self._clock()


class AlertDispatcher:
    """Format and send one notification per entity, in order.

    A failure for one entity is logged and never blocks the rest of the batch.
    Retries belong to the notifier adapter, not to this layer.
    """

    def __init__(
        self,
        notifier: NotifierPort,
        formatter: Callable[[CandidateEntity], str],
        send_interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._notifier = notifier
        self._formatter = formatter
        # Shared across batches so back-to-back polls still respect the
        # channel's rate limit.
        self._throttle = Throttle(send_interval, clock=clock, sleep=sleep)

    async def dispatch(self, entities: Iterable[CandidateEntity]) -> int:
        """Send alerts for entities and return how many were delivered."""

        delivered = 0
        for entity in entities:
            await self._throttle.wait()
            try:
                message = self._formatter(entity)
                await self._notifier.send(message)
            except Exception:
                LOGGER.exception("Alert delivery failed for %s", entity.identity_key)
                continue
            delivered += 1
            LOGGER.info("Alert sent for %s", entity.identity_key)
        return delivered
