"""SQLite dedup store adapter.

Implements the core DedupStorePort as a durable key-value map with optional
per-key expiry.
"""

from __future__ import annotations

import sqlite3
import time
from typing import Callable, Optional


class SQLiteDedupStore:
    """Thin SQLite wrapper that satisfies the DedupStorePort contract."""

    def __init__(self, db_path: str, clock: Callable[[], float] = time.time) -> None:
        self._db_path = db_path
        self._clock = clock

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create the markers table if it does not exist."""

        with self._connect() as conn:
            # markers records which entities already triggered an alert.
            # Fields:
            # - key: entity identity key, token id or transaction signature
            # - marker: opaque value written on first sight
            # - expires_at: unix time after which the marker is ignored,
            #   NULL for permanent markers
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS markers (
                    key TEXT PRIMARY KEY,
                    marker TEXT NOT NULL,
                    expires_at REAL
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        """Return the live marker for key, or None if absent or expired."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT marker, expires_at FROM markers WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        if row["expires_at"] is not None and row["expires_at"] <= self._clock():
            return None
        return row["marker"]

    def put(self, key: str, marker: str, ttl_seconds: Optional[int] = None) -> None:
        """Upsert a marker; the last write wins."""

        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO markers (key, marker, expires_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    marker = excluded.marker,
                    expires_at = excluded.expires_at
                """,
                (key, marker, expires_at),
            )

    def cleanup_expired(self) -> int:
        """Delete expired markers and return the number removed."""

        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM markers WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._clock(),),
            )
            return cur.rowcount
