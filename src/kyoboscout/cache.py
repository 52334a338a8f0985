"""In-memory TTL cache with access-weighted LRU eviction."""

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Generic, TypeVar

from kyoboscout.log import get_logger
from kyoboscout.models import Book

T = TypeVar("T")

# Retention score weights: frequently hit entries stay, long idle ones go.
ACCESS_WEIGHT = 0.3
RECENCY_WEIGHT = 0.7


@dataclass
class CacheEntry(Generic[T]):
    value: T
    timestamp: float
    last_access: float
    access_count: int = 0

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.timestamp > ttl

    def retention_score(self, now: float) -> float:
        idle_ms = (now - self.last_access) * 1000
        return ACCESS_WEIGHT * self.access_count * 1000 - RECENCY_WEIGHT * idle_ms


@dataclass
class CacheStats:
    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int
    expired: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total * 100 if total else 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["hit_rate"] = self.hit_rate
        return data


class MemoryCache(Generic[T]):
    """A bounded key/value cache.

    Entries expire ``ttl`` seconds after they were stored. Expired entries are
    dropped when read and by a sweep that runs at most every
    ``sweep_interval`` seconds. When the cache is full, storing a new key
    evicts the one entry with the lowest retention score.

    Args:
        max_size: Maximum number of entries.
        ttl: Entry lifetime in seconds.
        sweep_interval: Minimum time between sweeps of expired entries.
        clock: Monotonic time source in seconds.
        logger: Logger for evictions and sweeps.
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl: float = 30 * 60,
        sweep_interval: float = 5 * 60,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self.clock = clock
        self.logger = logger or get_logger("cache")
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.RLock()
        self._last_sweep = clock()
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expired = 0

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep >= self.sweep_interval:
            self._sweep(now)

    def _sweep(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now, self.ttl)]
        for key in expired:
            del self._entries[key]
        self._expired += len(expired)
        self._last_sweep = now
        if expired:
            self.logger.debug("Removed %d expired cache entries", len(expired))
        return len(expired)

    def _live_entry(self, key: str, now: float) -> CacheEntry[T] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(now, self.ttl):
            del self._entries[key]
            self._expired += 1
            return None
        return entry

    def _evict_one(self, now: float) -> None:
        victim = min(self._entries, key=lambda key: self._entries[key].retention_score(now))
        del self._entries[victim]
        self._evictions += 1
        self.logger.debug("Evicted cache entry %s", victim)

    def get(self, key: str) -> T | None:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            now = self.clock()
            self._maybe_sweep(now)
            entry = self._live_entry(key, now)
            if entry is None:
                self._misses += 1
                return None
            entry.access_count += 1
            entry.last_access = now
            self._hits += 1
            return entry.value

    def set(self, key: str, value: T) -> None:
        with self._lock:
            now = self.clock()
            self._maybe_sweep(now)
            entry = self._entries.get(key)
            if entry is not None:
                # Overwrites keep the access count
                entry.value = value
                entry.timestamp = now
                entry.last_access = now
                return
            if len(self._entries) >= self.max_size:
                self._evict_one(now)
            self._entries[key] = CacheEntry(value=value, timestamp=now, last_access=now)

    def has(self, key: str) -> bool:
        """True if key holds an unexpired value. Does not count as an access."""
        with self._lock:
            return self._live_entry(key, self.clock()) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry and reset the counters."""
        with self._lock:
            self._entries.clear()
            self._reset_counters()
            self._last_sweep = self.clock()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def values(self) -> list[T]:
        with self._lock:
            return [entry.value for entry in self._entries.values()]

    def cleanup(self) -> int:
        """Remove expired entries now; returns how many were removed."""
        with self._lock:
            return self._sweep(self.clock())

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self.max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expired=self._expired,
            )


class BookCache(MemoryCache[Book]):
    """Cache of enriched detail records, keyed ``detail:<id>``."""

    def __init__(
        self,
        max_size: int = 200,
        ttl: float = 60 * 60,
        sweep_interval: float = 5 * 60,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(max_size=max_size, ttl=ttl, sweep_interval=sweep_interval, clock=clock, logger=logger)

    @staticmethod
    def detail_key(book_id: str) -> str:
        return f"detail:{book_id}"

    @staticmethod
    def search_key(query: str, max_results: int, enable_detail_fetch: bool) -> str:
        """Key for a search result; the query is matched case-insensitively."""
        return json.dumps(
            {"query": query.strip().lower(), "max_results": max_results, "detail": enable_detail_fetch},
            ensure_ascii=False,
            sort_keys=True,
        )

    def get_book(self, book_id: str) -> Book | None:
        return self.get(self.detail_key(book_id))

    def put_book(self, book: Book) -> None:
        self.set(self.detail_key(book.id), book)

    def invalidate_book(self, book_id: str) -> bool:
        return self.delete(self.detail_key(book_id))
