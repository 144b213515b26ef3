"""SQLite-backed cache for the last fetched place collection."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from typing import Any, Callable, Dict, List, Optional

from .models import CacheEntry, CacheKey
from .settings import CACHE_TTL_SECONDS, DEFAULT_STORAGE_KEY

logger = logging.getLogger(__name__)


class ResultCache:
    """Single-entry expiring store keyed by the fetch filters.

    The entry lives under one namespaced storage key as a JSON document
    ``{"data": [...], "filters": {...}, "timestamp": <seconds>}``.  An entry is
    only returned while it is younger than ``ttl_seconds`` and recorded for
    exactly the requested filters.  Storage failures never reach the caller;
    they degrade to a cache miss.
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        ttl_seconds: float = CACHE_TTL_SECONDS,
        storage_key: str = DEFAULT_STORAGE_KEY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db_path = db_path
        self.ttl_seconds = ttl_seconds
        self.storage_key = storage_key
        self._clock = clock
        self._conn: Optional[sqlite3.Connection] = None
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._init_db()
        except sqlite3.Error:
            logger.warning("Result cache unavailable at %s", self.db_path, exc_info=True)
            self._conn = None

    def _init_db(self) -> None:
        assert self._conn is not None
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS local_storage (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _read(self) -> Optional[str]:
        if self._conn is None:
            return None
        row = self._conn.execute("SELECT value FROM local_storage WHERE key = ?", (self.storage_key,)).fetchone()
        return row[0] if row else None

    def _remove(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.execute("DELETE FROM local_storage WHERE key = ?", (self.storage_key,))
            self._conn.commit()
        except sqlite3.Error:
            logger.warning("Failed to remove cache entry", exc_info=True)

    def entry(self) -> Optional[CacheEntry]:
        """Return the stored entry if it is well formed and not expired."""

        try:
            raw = self._read()
        except sqlite3.Error:
            logger.warning("Error reading cache", exc_info=True)
            return None
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
            filters = payload["filters"]
            entry = CacheEntry(
                places=list(payload["data"]),
                key=CacheKey(
                    search=filters["search"],
                    category=filters["category"],
                    region=filters["region"],
                    city=filters["city"],
                ),
                stored_at=float(payload["timestamp"]),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding corrupt cache entry")
            self._remove()
            return None

        if self._clock() - entry.stored_at >= self.ttl_seconds:
            logger.debug("Cache expired, clearing")
            self._remove()
            return None
        return entry

    def get(self, key: CacheKey) -> Optional[List[Dict[str, Any]]]:
        entry = self.entry()
        if entry is None:
            return None
        if entry.key != key:
            logger.debug("Cached filters %s differ from %s", entry.key, key)
            return None
        return entry.places

    def put(self, key: CacheKey, places: List[Dict[str, Any]]) -> None:
        if self._conn is None:
            return
        document = json.dumps({"data": places, "filters": key.as_dict(), "timestamp": self._clock()})
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO local_storage (key, value) VALUES (?, ?)",
                (self.storage_key, document),
            )
            self._conn.commit()
        except sqlite3.Error:
            logger.warning("Error writing cache, dropping entry", exc_info=True)
            self._remove()
            return
        logger.debug("Cached %d places", len(places))

    def clear(self) -> None:
        self._remove()
