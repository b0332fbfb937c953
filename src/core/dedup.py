"""New-entity filter (core domain).

Decides which observed entities are new and marks them in the dedup store
before any alert goes out. Marking first means a crash between mark and send
loses that alert, but an entity is never alerted twice while its marker lives.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from core.config import DedupConfig
from core.models import CandidateEntity, SwapTransaction, TokenCandidate
from core.ports import DedupStorePort

LOGGER = logging.getLogger(__name__)


def marker_ttl(entity: CandidateEntity, config: DedupConfig) -> Optional[int]:
    """Return the marker expiry for an entity, None meaning permanent."""

    if isinstance(entity, TokenCandidate):
        return config.token_ttl_seconds
    if isinstance(entity, SwapTransaction):
        return config.transaction_ttl_seconds
    raise TypeError(f"Unsupported entity type: {type(entity).__name__}")


def qualifies(entity: CandidateEntity, config: DedupConfig) -> bool:
    """Apply business thresholds that gate an entity before any dedup lookup."""

    if isinstance(entity, TokenCandidate):
        return entity.market_cap_usd >= config.min_market_cap_usd
    return True


def partition_new(
    entities: Iterable[CandidateEntity],
    store: DedupStorePort,
    config: DedupConfig,
) -> list[CandidateEntity]:
    """Return the newly seen entities in input order, marking each as seen.

    Entities are handled one at a time so the store sees a single sequential
    stream of get/put calls.
    """

    fresh: list[CandidateEntity] = []
    skipped = 0
    for entity in entities:
        # Gate before lookup so we never write markers for entities that were
        # never going to alert.
        if not qualifies(entity, config):
            continue

        key = entity.identity_key
        if store.get(key) is not None:
            LOGGER.debug("Dedup skip for %s (already alerted)", key)
            skipped += 1
            continue

        store.put(key, config.marker, marker_ttl(entity, config))
        fresh.append(entity)

    if skipped:
        LOGGER.info("Dedup skipped %s already alerted entities", skipped)
    return fresh
