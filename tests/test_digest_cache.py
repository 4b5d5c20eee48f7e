"""Tests for the checksum cache."""

import threading
from unittest.mock import Mock

import pytest

from gisquick_sync.digest_cache import CacheEntry, ChecksumCache


@pytest.fixture
def cache():
    return ChecksumCache()


class TestLookup:
    """Test hit/miss rules."""

    def test_empty_cache_misses(self, cache):
        assert cache.lookup("/p/a.txt", 10, 1000) is None

    def test_hit_on_same_size_and_mtime(self, cache):
        cache.store("/p/a.txt", "abc", 10, 1000)
        assert cache.lookup("/p/a.txt", 10, 1000) == "abc"

    def test_miss_on_size_change(self, cache):
        cache.store("/p/a.txt", "abc", 10, 1000)
        assert cache.lookup("/p/a.txt", 11, 1000) is None

    def test_miss_on_mtime_change(self, cache):
        cache.store("/p/a.txt", "abc", 10, 1000)
        assert cache.lookup("/p/a.txt", 10, 1001) is None

    def test_paths_are_independent(self, cache):
        cache.store("/p/a.txt", "abc", 10, 1000)
        assert cache.lookup("/p/b.txt", 10, 1000) is None

    def test_store_overwrites(self, cache):
        cache.store("/p/a.txt", "old", 10, 1000)
        cache.store("/p/a.txt", "new", 12, 2000)

        assert cache.lookup("/p/a.txt", 10, 1000) is None
        assert cache.lookup("/p/a.txt", 12, 2000) == "new"
        assert cache.get("/p/a.txt") == CacheEntry(checksum="new", size=12, mtime=2000)
        assert len(cache) == 1


class TestGetOrCompute:
    """Test memoized computation."""

    def test_computes_once(self, cache):
        compute = Mock(return_value="digest")

        assert cache.get_or_compute("/p/a.txt", 5, 100, compute) == "digest"
        assert cache.get_or_compute("/p/a.txt", 5, 100, compute) == "digest"
        compute.assert_called_once_with("/p/a.txt")

    def test_recomputes_after_change(self, cache):
        compute = Mock(side_effect=["first", "second"])

        assert cache.get_or_compute("/p/a.txt", 5, 100, compute) == "first"
        assert cache.get_or_compute("/p/a.txt", 5, 101, compute) == "second"
        assert compute.call_count == 2

    def test_failure_is_not_cached(self, cache):
        compute = Mock(side_effect=RuntimeError("tool crashed"))

        with pytest.raises(RuntimeError):
            cache.get_or_compute("/p/a.gpkg", 5, 100, compute)
        assert "/p/a.gpkg" not in cache


class TestLifecycle:
    """Test reset and concurrent use."""

    def test_clear(self, cache):
        cache.store("/p/a.txt", "abc", 10, 1000)
        cache.store("/p/b.txt", "def", 10, 1000)
        cache.clear()

        assert len(cache) == 0
        assert cache.lookup("/p/a.txt", 10, 1000) is None

    def test_empty_cache_is_falsy_but_usable(self, cache):
        # Callers must compare against None, not truthiness
        assert not cache
        cache.store("/p/a.txt", "abc", 1, 1)
        assert cache

    def test_concurrent_store_and_lookup(self, cache):
        def worker(n):
            for i in range(200):
                path = f"/p/{n}/{i}"
                cache.store(path, f"{n}-{i}", i, i)
                assert cache.lookup(path, i, i) == f"{n}-{i}"

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 8 * 200
