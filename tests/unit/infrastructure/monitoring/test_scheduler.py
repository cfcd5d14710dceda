"""
Unit tests for the health sweep scheduler lifecycle and sweep behaviour.
"""

import logging
import time
from datetime import timedelta
from unittest.mock import Mock

import pytest

from src.infrastructure.cache.aggregation_cache import AggregationCache, health_key, series_token
from src.infrastructure.monitoring.alert_engine import AlertEngine
from src.infrastructure.monitoring.health import HealthScorer
from src.infrastructure.monitoring.metric_store import MetricStore
from src.infrastructure.monitoring.scheduler import HealthSweepScheduler


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


@pytest.fixture
def store():
    return MetricStore()


@pytest.fixture
def scorer(store, clock):
    return HealthScorer(store, AlertEngine(clock=clock), clock=clock)


@pytest.fixture
def scheduler(scorer, store, clock):
    scheduler = HealthSweepScheduler(scorer, store, default_interval=0.01, clock=clock)
    yield scheduler
    scheduler.stop()


class TestRunOnce:
    """Test a single sweep."""

    def test_scores_every_category(self, scheduler, store, make_metric):
        """Test each category with data is rescored."""
        store.append(make_metric(category="build"))
        store.append(make_metric(category="deploy"))

        results = scheduler.run_once()

        assert sorted(results) == ["build", "deploy"]
        assert scheduler.sweep_count == 1

    def test_stale_category_ages_without_traffic(self, scheduler, store, clock, make_metric):
        """Test a sweep degrades a category that stopped reporting."""
        store.append(make_metric())
        assert scheduler.run_once()["build"].is_healthy

        clock.advance(hours=1)

        assert not scheduler.run_once()["build"].is_healthy

    def test_failure_in_one_category_does_not_stop_others(self, store, make_metric, caplog):
        """Test a scoring error is logged and the sweep continues."""
        store.append(make_metric(category="a"))
        store.append(make_metric(category="b"))
        scorer = Mock()

        def score(category):
            if category == "a":
                raise RuntimeError("scoring failed")
            return f"status-{category}"

        scorer.score.side_effect = score
        scheduler = HealthSweepScheduler(scorer, store)

        with caplog.at_level(logging.ERROR, logger="src.infrastructure.monitoring.scheduler"):
            results = scheduler.run_once()

        assert results == {"b": "status-b"}
        assert scheduler.failure_count == 1
        assert any(getattr(r, "category", None) == "a" for r in caplog.records)

    def test_retention_purges_and_clears_cache(self, scorer, store, clock, make_metric, monotonic):
        """Test observations past retention are dropped and cached reads cleared."""
        cache = AggregationCache(clock=monotonic)
        cache.get_or_compute("aggregate:build:time:*:*", lambda: "summary")
        store.append(make_metric(value=1))
        clock.advance(hours=2)
        store.append(make_metric(value=2))

        scheduler = HealthSweepScheduler(
            scorer, store, cache=cache, retention=timedelta(hours=1), clock=clock
        )
        scheduler.run_once()

        assert [m.value for m in store.query("build", "time")] == [2]
        assert len(cache) == 0

    def test_retention_keeps_cache_when_nothing_removed(self, scorer, store, clock, make_metric, monotonic):
        """Test the cache survives a sweep that purged nothing."""
        cache = AggregationCache(clock=monotonic)
        cache.get_or_compute("k", lambda: 1)
        store.append(make_metric())

        scheduler = HealthSweepScheduler(
            scorer, store, cache=cache, retention=timedelta(hours=1), clock=clock
        )
        scheduler.run_once()

        assert "k" in cache

    def test_rescored_health_dropped_from_cache(self, scorer, store, make_metric, monotonic):
        """Test a sweep drops the cached health of each category it scores."""
        cache = AggregationCache(default_ttl=3600, clock=monotonic)
        store.append(make_metric(category="build"))
        store.append(make_metric(category="deploy"))
        cache.get_or_compute(health_key("build"), lambda: "pre-sweep")
        cache.get_or_compute(health_key("deploy"), lambda: "pre-sweep")
        cache.get_or_compute(series_token("build", "time"), lambda: "summary")

        HealthSweepScheduler(scorer, store, cache=cache).run_once()

        assert health_key("build") not in cache
        assert health_key("deploy") not in cache
        assert series_token("build", "time") in cache

    def test_emptied_category_still_swept(self, scorer, store, clock, make_metric):
        """Test a category emptied by retention keeps being scored."""
        store.append(make_metric())
        clock.advance(hours=2)
        scheduler = HealthSweepScheduler(scorer, store, retention=timedelta(hours=1), clock=clock)

        results = scheduler.run_once()

        assert "build" in results
        assert not results["build"].is_healthy


class TestLifecycle:
    """Test start/stop semantics."""

    def test_interval_must_be_positive(self, scheduler):
        """Test invalid intervals are rejected."""
        with pytest.raises(ValueError):
            scheduler.start(0)
        with pytest.raises(ValueError):
            scheduler.start(-1)
        assert not scheduler.is_running

    def test_stop_before_start_is_noop(self, scheduler):
        """Test stopping an idle scheduler does nothing."""
        scheduler.stop()
        scheduler.stop()

        assert not scheduler.is_running

    def test_sweeps_run_periodically(self, scheduler, store, make_metric):
        """Test the background thread sweeps repeatedly."""
        store.append(make_metric())

        scheduler.start()

        assert wait_until(lambda: scheduler.sweep_count >= 3)
        assert scheduler.is_running

    def test_no_sweep_after_stop(self, scheduler, store, make_metric):
        """Test stop returns only after the thread exited and sweeps cease."""
        store.append(make_metric())
        scheduler.start()
        assert wait_until(lambda: scheduler.sweep_count >= 1)

        scheduler.stop()
        count = scheduler.sweep_count
        time.sleep(0.1)

        assert scheduler.sweep_count == count
        assert not scheduler.is_running

    def test_stop_is_idempotent(self, scheduler):
        """Test repeated stops are safe."""
        scheduler.start()

        scheduler.stop()
        scheduler.stop()

        assert not scheduler.is_running

    def test_restart_after_stop(self, scheduler, store, make_metric):
        """Test the scheduler can be started again."""
        store.append(make_metric())
        scheduler.start()
        scheduler.stop()
        count = scheduler.sweep_count

        scheduler.start()

        assert wait_until(lambda: scheduler.sweep_count > count)

    def test_double_start_warns(self, scheduler, caplog):
        """Test starting a running scheduler logs a warning and keeps one thread."""
        scheduler.start(interval=10)

        with caplog.at_level(logging.WARNING, logger="src.infrastructure.monitoring.scheduler"):
            scheduler.start(interval=10)

        assert "already running" in caplog.text
        assert scheduler.is_running

    def test_stop_interrupts_long_interval(self, scheduler):
        """Test stop does not wait out the interval."""
        scheduler.start(interval=60)
        started = time.monotonic()

        scheduler.stop()

        assert time.monotonic() - started < 5
        assert scheduler.sweep_count == 0
