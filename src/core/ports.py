"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage and notification adapters so
that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Optional, Protocol


class DedupStorePort(Protocol):
    """Durable key-value map with per-key expiry."""

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, marker: str, ttl_seconds: Optional[int] = None) -> None:
        ...


class NotifierPort(Protocol):
    """Fire-and-forget delivery of a formatted message.

    Implementations raise NotifyFailure when delivery fails.
    """

    async def send(self, text: str) -> None:
        ...
