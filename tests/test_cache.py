"""Tests for the in-memory caches."""

import pytest

from kyoboscout.cache import BookCache, MemoryCache
from kyoboscout.models import Book


@pytest.fixture
def cache(clock):
    return MemoryCache(max_size=3, ttl=10, sweep_interval=60, clock=clock)


class TestGetSet:
    """Tests for basic cache access."""

    def test_set_then_get(self, cache):
        """Should return the stored value."""
        cache.set("a", 1)
        assert cache.get("a") == 1
        assert cache.has("a")

    def test_missing_key(self, cache):
        """Should return None for unknown keys."""
        assert cache.get("nope") is None
        assert not cache.has("nope")

    def test_overwrite_does_not_evict(self, cache):
        """Should replace an existing key in place."""
        for key in "abc":
            cache.set(key, key)
        cache.set("a", "A")
        assert cache.size() == 3
        assert cache.get("a") == "A"
        assert cache.stats().evictions == 0

    def test_delete(self, cache):
        """Should report whether a key was removed."""
        cache.set("a", 1)
        assert cache.delete("a") is True
        assert cache.delete("a") is False


class TestExpiry:
    """Tests for time-to-live handling."""

    def test_expires_after_ttl(self, cache, clock):
        """Should drop entries older than the TTL."""
        cache.set("a", 1)
        clock.advance(10)
        assert cache.get("a") == 1
        clock.advance(1)
        assert cache.get("a") is None
        assert not cache.has("a")
        assert cache.size() == 0

    def test_periodic_sweep(self, cache, clock):
        """Should sweep expired entries once the sweep interval has passed."""
        cache.set("a", 1)
        cache.set("b", 2)
        clock.advance(61)
        cache.set("c", 3)
        assert cache.keys() == ["c"]
        assert cache.stats().expired == 2

    def test_cleanup(self, cache, clock):
        """Should remove expired entries on demand."""
        cache.set("a", 1)
        clock.advance(5)
        cache.set("b", 2)
        clock.advance(6)
        assert cache.cleanup() == 1
        assert cache.keys() == ["b"]


class TestEviction:
    """Tests for eviction when the cache is full."""

    def test_evicts_exactly_one(self, cache, clock):
        """Should evict a single entry when a new key arrives at capacity."""
        for key in "abc":
            cache.set(key, key)
            clock.advance(1)
        cache.set("d", "d")
        assert cache.size() == 3
        assert cache.stats().evictions == 1

    def test_evicts_least_recently_used(self, cache, clock):
        """Should evict the entry idle the longest when access counts are equal."""
        for key in "abc":
            cache.set(key, key)
            clock.advance(1)
        cache.set("d", "d")
        assert sorted(cache.keys()) == ["b", "c", "d"]

    def test_frequent_access_protects_entry(self, cache, clock):
        """Should keep a frequently read entry over idle ones."""
        for key in "abc":
            cache.set(key, key)
            clock.advance(1)
        for _ in range(5):
            cache.get("a")
        clock.advance(1)
        cache.set("d", "d")
        assert cache.has("a")
        assert not cache.has("b")

    def test_overwrite_keeps_access_count(self, clock):
        """Should keep the read count of a key that is stored again."""
        cache = MemoryCache(max_size=2, ttl=100, sweep_interval=600, clock=clock)
        cache.set("hot", 1)
        for _ in range(50):
            cache.get("hot")
        clock.advance(1)
        cache.set("hot", 2)
        cache.set("cold", 3)
        cache.get("cold")
        clock.advance(1)
        cache.set("new", 4)
        assert cache.get("hot") == 2
        assert not cache.has("cold")


class TestStats:
    """Tests for cache statistics."""

    def test_counts_hits_and_misses(self, cache):
        """Should count hits and misses."""
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        stats = cache.stats()
        assert (stats.hits, stats.misses) == (1, 1)
        assert stats.hit_rate == 50

    def test_clear_resets_counters(self, cache):
        """Should empty the cache and reset counters."""
        cache.set("a", 1)
        cache.get("a")
        cache.clear()
        stats = cache.stats()
        assert stats.size == 0
        assert (stats.hits, stats.misses, stats.evictions) == (0, 0, 0)

    def test_values(self, cache):
        """Should list the stored values."""
        cache.set("a", 1)
        cache.set("b", 2)
        assert sorted(cache.values()) == [1, 2]

    def test_invalid_size(self):
        """Should reject a zero-size cache."""
        with pytest.raises(ValueError):
            MemoryCache(max_size=0)


class TestBookCache:
    """Tests for BookCache class."""

    def test_detail_key(self):
        """Should key books by detail:<id>."""
        assert BookCache.detail_key("1234567890") == "detail:1234567890"

    def test_put_and_get_book(self, clock):
        """Should store and fetch books by id."""
        cache = BookCache(clock=clock)
        book = Book.create(id="1234567890", title="소크라테스의 변명")
        cache.put_book(book)
        assert cache.get("detail:1234567890") is book
        assert cache.get_book("1234567890") is book
        assert cache.invalidate_book("1234567890") is True
        assert cache.get_book("1234567890") is None

    def test_defaults(self):
        """Should hold 200 books for an hour by default."""
        cache = BookCache()
        assert cache.max_size == 200
        assert cache.ttl == 3600

    def test_search_key_ignores_case_and_padding(self):
        """Should map equivalent queries to the same key."""
        assert BookCache.search_key(" Python ", 20, False) == BookCache.search_key("python", 20, False)
        assert BookCache.search_key("python", 20, False) != BookCache.search_key("python", 20, True)
