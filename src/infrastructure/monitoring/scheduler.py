"""
Health Sweep Scheduler

Background thread that re-scores every known category once per interval, so
categories without fresh traffic still age toward degraded. Each sweep also
applies retention cleanup and drops expired cache entries. The cached health of
a rescored category is dropped, so the next health read sees the sweep result.
"""

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from src.domain.value_objects.health import HealthStatus

from ..cache.aggregation_cache import AggregationCache, health_key
from .health import HealthScorer
from .metric_store import MetricStore

logger = logging.getLogger(__name__)


class HealthSweepScheduler:
    """
    Periodic health sweep with an explicit start/stop lifecycle.

    ``stop()`` is idempotent and returns only after the sweep thread has
    exited, so no sweep runs after it returns. The scheduler can be started
    again after a stop.
    """

    def __init__(
        self,
        scorer: HealthScorer,
        store: MetricStore,
        cache: AggregationCache | None = None,
        retention: timedelta | None = None,
        default_interval: float = 60.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.scorer = scorer
        self.store = store
        self.cache = cache
        self.retention = retention
        self.default_interval = default_interval
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._sweep_count = 0
        self._failure_count = 0

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    @property
    def sweep_count(self) -> int:
        return self._sweep_count

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def start(self, interval: float | None = None) -> None:
        """
        Start sweeping every ``interval`` seconds.

        Args:
            interval: Seconds between sweeps, defaults to ``default_interval``
        """
        interval = self.default_interval if interval is None else interval
        if interval <= 0:
            raise ValueError("interval must be positive")

        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                logger.warning("Health sweep scheduler already running")
                return

            # A fresh event per run keeps a previous thread's stop signal set
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event, interval),
                name="HealthSweepScheduler",
                daemon=True,
            )
            self._thread.start()

        logger.info(f"Health sweep scheduler started with interval {interval}s")

    def stop(self) -> None:
        """Stop sweeping and wait for the sweep thread to exit."""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._thread = None
            self._stop_event.set()

        if thread is not threading.current_thread():
            thread.join()

        logger.info("Health sweep scheduler stopped")

    def _run(self, stop_event: threading.Event, interval: float) -> None:
        logger.debug("Health sweep thread started")

        while not stop_event.wait(timeout=interval):
            try:
                self.run_once(stop_event)
            except Exception as e:
                self._failure_count += 1
                logger.error(f"Health sweep failed: {e}", exc_info=True)

        logger.debug("Health sweep thread stopped")

    def run_once(self, stop_event: threading.Event | None = None) -> dict[str, HealthStatus]:
        """
        Execute one sweep.

        A failure scoring one category is logged and does not prevent the
        remaining categories from being scored.

        Returns:
            Fresh status of every category scored successfully
        """
        if self.retention is not None and self.retention > timedelta(0):
            removed = self.store.purge_older_than(self._clock() - self.retention)
            # Cached aggregates may summarize purged observations
            if removed and self.cache is not None:
                self.cache.clear()
        if self.cache is not None:
            self.cache.purge_expired()

        results: dict[str, HealthStatus] = {}
        for category in self.store.known_categories():
            if stop_event is not None and stop_event.is_set():
                break
            try:
                results[category] = self.scorer.score(category)
                # Drop the pre-sweep cached status
                if self.cache is not None:
                    self.cache.invalidate(health_key(category))
            except Exception as e:
                self._failure_count += 1
                logger.error(
                    f"Health sweep failed for category {category}: {e}",
                    exc_info=True,
                    extra={"operation_type": "sweep_failure", "category": category},
                )

        self._sweep_count += 1
        return results
