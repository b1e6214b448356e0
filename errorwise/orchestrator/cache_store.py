"""Response Cache — content-addressed TTL store for validated analyses.

Entries are keyed by a fingerprint of (normalized text, language hint,
error-type hint, tier). Invalidation is pure expiry:
  - lazily, when ``get`` finds an expired entry
  - periodically, by a background sweeper task (default every 10 minutes)

A secondary ``max_entries`` bound evicts the oldest-inserted entry on overflow.

Thread-safe via a single threading.Lock; every operation is O(1) except
``sweep`` and never performs I/O while holding the lock.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable

from errorwise.orchestrator.sanitizer import normalize_for_fingerprint
from errorwise.orchestrator.types import AnalysisResult, CacheEntry, Tier

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 1800.0  # 30 minutes
DEFAULT_SWEEP_INTERVAL_SECONDS = 600.0  # 10 minutes
DEFAULT_MAX_ENTRIES = 1000


def make_cache_key(
    text: str,
    language_hint: str | None,
    error_type_hint: str | None,
    tier: Tier,
) -> str:
    """Deterministic fingerprint of the request fields that affect the answer."""
    parts = [
        tier.value,
        (language_hint or "").strip().lower(),
        (error_type_hint or "").strip().lower(),
        normalize_for_fingerprint(text),
    ]
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


class CacheStore:
    """In-process TTL cache of AnalysisResults.

    Usage:
        cache = CacheStore(ttl=1800)
        cache.start_sweeper()          # inside a running event loop

        hit = cache.get(key)
        if hit is None:
            cache.put(key, result)

        await cache.stop_sweeper()
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._sweeper: asyncio.Task | None = None

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> AnalysisResult | None:
        """Return the cached value, or None if absent or expired (expired entries are dropped)."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    def put(self, key: str, value: AnalysisResult, ttl: float | None = None) -> None:
        """Insert or overwrite an entry (idempotent upsert)."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=now, expires_at=now + ttl)

            while len(self._entries) > self.max_entries:
                oldest_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Cache full, evicted %s...", oldest_key[:16])

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.info("Cleaned %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> int:
        """Drop all entries. Returns the number cleared."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cleared %d cache entries", count)
        return count

    # ------------------------------------------------------------------
    # Background sweeper
    # ------------------------------------------------------------------

    def start_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> asyncio.Task:
        """Start the periodic sweep task on the running event loop (idempotent)."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop(interval))
        return self._sweeper

    async def stop_sweeper(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Cache sweep failed")

    def stats(self) -> dict:
        with self._lock:
            size = len(self._entries)
            lookups = self._hits + self._misses
            return {
                "size": size,
                "max_entries": self.max_entries,
                "ttl_seconds": self.default_ttl,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
                "evictions": self._evictions,
                "sweeper_running": self._sweeper is not None and not self._sweeper.done(),
            }
