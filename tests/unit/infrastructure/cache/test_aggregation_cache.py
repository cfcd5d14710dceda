"""
Unit tests for the single-flight TTL aggregation cache.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from src.domain.exceptions import ComputeFailureException
from src.infrastructure.cache.aggregation_cache import AggregationCache, CacheEntry, series_token


@pytest.fixture
def cache(monotonic):
    return AggregationCache(default_ttl=60.0, clock=monotonic)


class TestCacheEntry:
    """Test read-time expiry."""

    def test_expiry_is_strict(self):
        """Test an entry exactly ttl old is still fresh."""
        entry = CacheEntry(key="k", value=1, computed_at=100.0, ttl=10.0)

        assert not entry.is_expired(110.0)
        assert entry.is_expired(110.5)


class TestGetOrCompute:
    """Test memoization and expiry."""

    def test_compute_once_then_hit(self, cache):
        """Test the second read is served from cache."""
        compute = Mock(return_value=42)

        assert cache.get_or_compute("k", compute) == 42
        assert cache.get_or_compute("k", compute) == 42
        assert compute.call_count == 1

        stats = cache.stats()
        assert stats.misses == 1
        assert stats.hits == 1

    def test_ttl_expiry_recomputes(self, cache, monotonic):
        """Test an expired entry is recomputed."""
        compute = Mock(side_effect=[1, 2])

        cache.get_or_compute("k", compute, ttl=10)
        monotonic.advance(11)

        assert cache.get_or_compute("k", compute, ttl=10) == 2
        assert compute.call_count == 2

    def test_fresh_until_ttl(self, cache, monotonic):
        """Test an entry is served until its ttl passes."""
        compute = Mock(return_value=1)

        cache.get_or_compute("k", compute, ttl=10)
        monotonic.advance(10)
        cache.get_or_compute("k", compute, ttl=10)

        assert compute.call_count == 1

    def test_negative_settings_rejected(self):
        """Test invalid configuration."""
        with pytest.raises(ValueError):
            AggregationCache(default_ttl=-1)
        with pytest.raises(ValueError):
            AggregationCache(max_entries=-1)


class TestSingleFlight:
    """Test concurrent callers share one computation."""

    def test_fifty_concurrent_callers_compute_once(self):
        """Test 50 concurrent requests for one key run compute exactly once."""
        cache = AggregationCache()
        calls = 0
        calls_lock = threading.Lock()
        barrier = threading.Barrier(50)

        def slow_compute():
            nonlocal calls
            with calls_lock:
                calls += 1
            time.sleep(0.2)
            return "value"

        def request(_):
            barrier.wait()
            return cache.get_or_compute("trend:build:time:60", slow_compute)

        with ThreadPoolExecutor(max_workers=50) as pool:
            results = list(pool.map(request, range(50)))

        assert calls == 1
        assert results == ["value"] * 50
        stats = cache.stats()
        assert stats.misses + stats.waits + stats.hits == 50
        assert stats.misses == 1

    def test_failure_reaches_every_waiter(self):
        """Test waiters receive the failure and nothing is cached."""
        cache = AggregationCache()
        started = threading.Event()
        release = threading.Event()
        error = RuntimeError("database unavailable")

        def failing_compute():
            started.set()
            release.wait(5)
            raise error

        def first_caller():
            return cache.get_or_compute("k", failing_compute)

        def waiter():
            started.wait(5)
            return cache.get_or_compute("k", Mock(return_value="unused"))

        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [pool.submit(first_caller)]
            started.wait(5)
            futures += [pool.submit(waiter) for _ in range(3)]
            # Waiters must be blocked on the in-flight computation
            deadline = time.monotonic() + 5
            while cache.stats().waits < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
            release.set()

            for future in futures:
                with pytest.raises(ComputeFailureException) as exc_info:
                    future.result(timeout=5)
                assert exc_info.value.error is error
                assert exc_info.value.__cause__ is error

        assert "k" not in cache
        assert len(cache) == 0

    def test_failure_is_not_cached(self, cache):
        """Test the next call after a failure computes again."""
        compute = Mock(side_effect=[ValueError("boom"), 7])

        with pytest.raises(ComputeFailureException):
            cache.get_or_compute("k", compute)

        assert cache.get_or_compute("k", compute) == 7


class TestInvalidation:
    """Test substring invalidation."""

    def test_invalidate_forces_recompute(self, cache):
        """Test an invalidated key is recomputed on the next read."""
        compute = Mock(side_effect=["stale", "fresh"])
        cache.get_or_compute("trend:build:time:300", compute)

        removed = cache.invalidate("build:time")

        assert removed == 1
        assert cache.get_or_compute("trend:build:time:300", compute) == "fresh"

    def test_invalidate_matches_substring_only(self, cache):
        """Test unrelated keys survive."""
        cache.get_or_compute("trend:build:time:300", lambda: 1)
        cache.get_or_compute("aggregate:build:time:*:*", lambda: 2)
        cache.get_or_compute("trend:deploy:time:300", lambda: 3)

        assert cache.invalidate("build:time") == 2
        assert "trend:deploy:time:300" in cache
        assert cache.stats().invalidations == 2

    def test_series_tokens_unambiguous(self, cache):
        """Test look-alike series get distinct key segments."""
        cache.get_or_compute(f"trend:{series_token('a', 'b:c')}:60.0", lambda: 1)
        cache.get_or_compute(f"trend:{series_token('a:b', 'c')}:60.0", lambda: 2)

        assert series_token("a", "b:c") != series_token("a:b", "c")
        assert cache.invalidate(series_token("a", "b:c")) == 1
        assert f"trend:{series_token('a:b', 'c')}:60.0" in cache

    def test_invalidate_during_compute_discards_result(self, cache):
        """Test a result computed across an invalidation is not stored."""

        def compute():
            cache.invalidate("build:time")
            return "computed before the write"

        assert cache.get_or_compute("trend:build:time:60", compute) == "computed before the write"
        assert "trend:build:time:60" not in cache

    def test_clear(self, cache):
        """Test clear drops everything."""
        cache.get_or_compute("a", lambda: 1)

        cache.clear()

        assert len(cache) == 0


class TestBounds:
    """Test memory-bound safeguards."""

    def test_max_entries_evicts_oldest(self, monotonic):
        """Test the entry computed longest ago is evicted first."""
        cache = AggregationCache(max_entries=2, clock=monotonic)
        for key in ("a", "b", "c"):
            cache.get_or_compute(key, lambda: key)
            monotonic.advance(1)

        assert "a" not in cache
        assert "b" in cache and "c" in cache
        assert cache.stats().evictions == 1

    def test_purge_expired(self, cache, monotonic):
        """Test expired entries are dropped."""
        cache.get_or_compute("old", lambda: 1, ttl=5)
        cache.get_or_compute("new", lambda: 2, ttl=100)
        monotonic.advance(10)

        assert cache.purge_expired() == 1
        assert len(cache) == 1


class TestTelemetryHook:
    """Test the per-request callback."""

    def test_results_reported(self, monotonic):
        """Test miss then hit are reported."""
        on_request = Mock()
        cache = AggregationCache(clock=monotonic, on_request=on_request)

        cache.get_or_compute("k", lambda: 1)
        cache.get_or_compute("k", lambda: 1)

        assert [c.args[0] for c in on_request.call_args_list] == ["miss", "hit"]

    def test_stats_to_dict(self, cache):
        """Test stats serialization and hit rate."""
        cache.get_or_compute("k", lambda: 1)
        cache.get_or_compute("k", lambda: 1)

        data = cache.stats().to_dict()

        assert data["hit_rate"] == 0.5
        assert data["size"] == 1
