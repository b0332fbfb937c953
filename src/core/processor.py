"""Core alert pipeline.

This module is integration-agnostic. It only relies on ports for storage and
notifications, and on caller-supplied fetchers for upstream data.

Each invocation follows a strict order:
1) Fetch candidates (poll) or accept a parsed batch (webhook)
2) Partition out already-alerted entities, marking new ones as seen
3) Dispatch one alert per new entity, isolating per-item failures
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Sequence

from core.config import DedupConfig
from core.dedup import partition_new
from core.dispatcher import AlertDispatcher
from core.errors import MalformedUpstreamResponse, TransientUpstreamFailure
from core.models import CandidateEntity, SwapTransaction, TokenCandidate
from core.ports import DedupStorePort

LOGGER = logging.getLogger(__name__)


class AlertPipeline:
    """Orchestrates fetch, dedup, and dispatch for polls and webhook batches.

    Overlapping invocations may both find a key absent and both alert; the
    store's get/put pair is not coordinated across invocations.
    """

    def __init__(
        self,
        store: DedupStorePort,
        dispatcher: AlertDispatcher,
        dedup_config: DedupConfig,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._dedup = dedup_config

    async def run_poll(
        self,
        fetch_candidates: Callable[[], Awaitable[Sequence[TokenCandidate]]],
    ) -> int:
        """Run one poll cycle and return the number of alerts delivered.

        Never raises: the scheduler must always get control back.
        """

        try:
            candidates = await fetch_candidates()
        except (TransientUpstreamFailure, MalformedUpstreamResponse) as exc:
            # Nothing was fetched, so nothing gets marked for this cycle.
            LOGGER.error("Poll cycle aborted: %s", exc)
            return 0
        except Exception:
            LOGGER.exception("Poll cycle failed while fetching candidates")
            return 0

        try:
            return await self._process(candidates, origin="poll")
        except Exception:
            LOGGER.exception("Poll cycle failed")
            return 0

    async def handle_transactions(self, transactions: Sequence[SwapTransaction]) -> int:
        """Process one webhook batch and return the number of alerts delivered."""

        return await self._process(transactions, origin="webhook")

    async def _process(self, entities: Sequence[CandidateEntity], origin: str) -> int:
        new_entities = partition_new(entities, self._store, self._dedup)
        LOGGER.info(
            "%s batch: %s candidates, %s new",
            origin,
            len(entities),
            len(new_entities),
        )
        if not new_entities:
            return 0
        return await self._dispatcher.dispatch(new_entities)
