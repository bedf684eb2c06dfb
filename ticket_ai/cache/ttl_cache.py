"""
Search-result cache with time-to-live
Entries expire lazily on read and are swept periodically by a background task
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from loguru import logger


DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheEntry:
    """Cached search results stamped with their insertion time"""
    results: List[Any]
    timestamp: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now < self.timestamp + self.ttl

    @property
    def expires_at(self) -> float:
        return self.timestamp + self.ttl


class TTLCache:
    """
    Keyed result cache with per-entry TTL.

    - put() overwrites any existing entry and stamps it with the current time
    - get() reports a miss for absent or expired keys; an expired entry is
      removed as a side effect and the caller must re-fetch
    - sweep() drops every expired entry and is safe to call from a timer
      while the request path reads and writes

    There is no size bound; growth is limited by the owning session's lifetime.

    Usage:
        cache = TTLCache()
        cache.put("jazz", [event])
        results, hit = cache.get("jazz")
    """

    def __init__(self, default_ttl: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    def put(self, key: str, results: Iterable[Any], ttl: Optional[float] = None) -> CacheEntry:
        entry = CacheEntry(
            results=list(results),
            timestamp=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl
        )
        with self._lock:
            self._entries[key] = entry
        logger.debug(f"Cached {len(entry.results)} results for '{key}' (ttl={entry.ttl}s)")
        return entry

    def get(self, key: str) -> Tuple[Optional[List[Any]], bool]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            if not entry.is_valid(now):
                # Lazy eviction; only remove the entry we inspected
                if self._entries.get(key) is entry:
                    del self._entries[key]
                logger.debug(f"Cache entry '{key}' expired")
                return None, False
            return list(entry.results), True

    def sweep(self) -> int:
        """Remove every expired entry; returns the number removed"""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


async def run_periodic_sweep(caches: Callable[[], Iterable[TTLCache]], interval: float):
    """
    Sweep every cache returned by `caches` once per `interval` seconds.

    Runs until cancelled; intended to be started from the application lifespan.
    """
    logger.info(f"Cache sweeper started (interval={interval}s)")
    try:
        while True:
            await asyncio.sleep(interval)
            removed = sum(cache.sweep() for cache in list(caches()))
            if removed:
                logger.debug(f"Periodic sweep removed {removed} entries")
    except asyncio.CancelledError:
        logger.info("Cache sweeper stopped")
        raise
