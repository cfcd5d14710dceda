"""
Metrics Aggregation & Alerting Engine

Facade wiring the series store, alert engine, trend analysis, health scoring,
aggregation cache and health sweep scheduler behind one programmatic API.

Ingest is synchronous: when ``ingest`` returns, the observation is stored,
thresholds are evaluated, cached aggregates of the series are invalidated and
the category's health is recomputed. Reads of trends, aggregates and health go
through the aggregation cache.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from opentelemetry.sdk.metrics import MeterProvider

from src.domain.entities.alert import Alert
from src.domain.entities.metric import Metric, SeriesKey
from src.domain.exceptions import InvalidMetricException, SeriesNotFoundException
from src.domain.services.health_scoring_policy import HealthScoringPolicy
from src.domain.services.threshold_policy_service import ThresholdPolicy
from src.domain.services.trend_analysis_service import TrendAnalysisService
from src.domain.value_objects.health import HealthStatus
from src.domain.value_objects.trend import Trend, TrendStatistics

from ..cache.aggregation_cache import AggregationCache, CacheStats, health_key, series_token
from ..config import EngineConfig
from .alert_engine import AlertEngine
from .health import HealthScorer
from .logging import setup_logging_from_config
from .metric_store import MetricStore
from .metrics import EngineTelemetry
from .scheduler import HealthSweepScheduler

logger = logging.getLogger(__name__)

PersistenceHook = Callable[[Metric], None]


class MetricsEngine:
    """Programmatic API of the metrics engine."""

    def __init__(
        self,
        store: MetricStore,
        alerts: AlertEngine,
        cache: AggregationCache,
        scorer: HealthScorer,
        scheduler: HealthSweepScheduler,
        analyzer: TrendAnalysisService | None = None,
        persistence_hook: PersistenceHook | None = None,
        telemetry: EngineTelemetry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.alerts = alerts
        self.cache = cache
        self.scorer = scorer
        self.scheduler = scheduler
        self.analyzer = analyzer or TrendAnalysisService()
        self.persistence_hook = persistence_hook
        self.telemetry = telemetry or EngineTelemetry()
        self._clock = clock or (lambda: datetime.now(UTC))

    # Ingestion

    def ingest(self, metric: Metric) -> Alert | None:
        """
        Store an observation and evaluate it.

        Args:
            metric: Observation to ingest

        Returns:
            The alert raised by this observation, if any

        Raises:
            InvalidMetricException: If the observation is malformed
        """
        try:
            metric.validate()
        except InvalidMetricException as e:
            self.telemetry.record_rejected(e.field)
            logger.info(f"Rejected metric: {e.reason}", extra={"operation_type": "ingest_rejected"})
            raise

        # Holding the series lock keeps alert order equal to ingest order
        with self.store.lock_for(metric.key):
            self.store.append(metric)
            alert = self.alerts.evaluate(metric)

        self.cache.invalidate(series_token(metric.category, metric.name))
        self.cache.invalidate(health_key(metric.category))
        self.scorer.score(metric.category)

        self.telemetry.record_ingested(metric.category)
        if alert is not None:
            self.telemetry.record_alert(alert.severity.value, alert.category)

        logger.debug(
            f"Ingested {metric.key}={metric.value}{metric.unit}",
            extra={
                "operation_type": "ingest",
                "category": metric.category,
                "metric_name": metric.name,
                "metadata": dict(metric.metadata),
            },
        )

        self._persist(metric)
        return alert

    def _persist(self, metric: Metric) -> None:
        if self.persistence_hook is None:
            return
        try:
            self.persistence_hook(metric)
        except Exception as e:
            logger.warning(
                f"Persistence hook failed for {metric.key}: {e}",
                exc_info=True,
                extra={
                    "operation_type": "persistence_failure",
                    "category": metric.category,
                    "metric_name": metric.name,
                },
            )

    # Series reads

    def query(
        self,
        category: str,
        name: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Metric]:
        """Observations of a series within ``[start, end]``, oldest first."""
        return self.store.query(category, name, start, end)

    def keys(self) -> list[SeriesKey]:
        return self.store.keys()

    def categories(self) -> list[str]:
        return self.store.categories()

    def trend(self, category: str, name: str, window: timedelta) -> Trend:
        """
        Trend of a series over the trailing ``window``.

        Raises:
            SeriesNotFoundException: If the series never received data
            ComputeFailureException: If the computation failed
        """
        self._require_series(category, name)
        key = f"trend:{series_token(category, name)}:{window.total_seconds()!r}"

        def compute() -> Trend:
            series = self.store.query(category, name, start=self._clock() - window)
            return self.analyzer.analyze(SeriesKey(category, name), window, series)

        return self.cache.get_or_compute(key, compute)

    def aggregate(
        self,
        category: str,
        name: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> TrendStatistics:
        """
        Summary statistics of a series within ``[start, end]``.

        Raises:
            SeriesNotFoundException: If the series never received data
            ComputeFailureException: If the computation failed
        """
        self._require_series(category, name)
        start_key = start.isoformat() if start else "*"
        end_key = end.isoformat() if end else "*"
        key = f"aggregate:{series_token(category, name)}:{start_key}:{end_key}"

        def compute() -> TrendStatistics:
            values = [m.value for m in self.store.query(category, name, start, end)]
            return self.analyzer.statistics(values)

        return self.cache.get_or_compute(key, compute)

    def invalidate(self, category: str, name: str) -> int:
        """Drop cached trends and aggregates of one series; returns entries removed."""
        return self.cache.invalidate(series_token(category, name))

    def _require_series(self, category: str, name: str) -> None:
        if not self.store.has_series(category, name):
            raise SeriesNotFoundException(category, name)

    # Thresholds and alerts

    def set_threshold(
        self, category: str, name: str, warning: float, critical: float
    ) -> ThresholdPolicy:
        policy = self.alerts.set_threshold(category, name, warning, critical)
        self.cache.invalidate(health_key(category))
        return policy

    def remove_threshold(self, category: str, name: str) -> bool:
        removed = self.alerts.thresholds.remove_threshold(category, name)
        if removed:
            self.cache.invalidate(health_key(category))
        return removed

    def get_threshold(self, category: str, name: str) -> ThresholdPolicy | None:
        return self.alerts.thresholds.get_threshold(category, name)

    def thresholds(self) -> list[ThresholdPolicy]:
        return self.alerts.thresholds.thresholds()

    def active_alerts(self) -> list[Alert]:
        return self.alerts.active_alerts()

    def alerts_for(self, category: str) -> list[Alert]:
        return self.alerts.alerts_for(category)

    def alert_history(self, limit: int | None = None) -> list[Alert]:
        return self.alerts.alert_history(limit)

    def resolve(self, alert_id: str, resolution: str | None = None) -> Alert:
        """
        Resolve an open alert.

        Raises:
            AlertNotFoundException: If the id is unknown or already resolved
        """
        alert = self.alerts.resolve(alert_id, resolution)
        self.cache.invalidate(health_key(alert.category))
        return alert

    # Health

    def health(self, category: str) -> HealthStatus:
        """
        Health of a category.

        Raises:
            SeriesNotFoundException: If the category never received data
        """
        if not self.store.has_category(category):
            raise SeriesNotFoundException(category)
        return self.cache.get_or_compute(health_key(category), lambda: self.scorer.score(category))

    def last_health(self, category: str) -> HealthStatus | None:
        return self.scorer.last_health(category)

    def health_overview(self) -> dict[str, HealthStatus]:
        return self.scorer.overview()

    # Lifecycle

    def start_scheduler(self, interval: float | timedelta | None = None) -> None:
        if isinstance(interval, timedelta):
            interval = interval.total_seconds()
        self.scheduler.start(interval)

    def stop_scheduler(self) -> None:
        self.scheduler.stop()

    @property
    def scheduler_running(self) -> bool:
        return self.scheduler.is_running

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def close(self) -> None:
        self.stop_scheduler()

    def __enter__(self) -> "MetricsEngine":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def create_metrics_engine(
    config: EngineConfig | None = None,
    *,
    persistence_hook: PersistenceHook | None = None,
    meter_provider: MeterProvider | None = None,
    health_policy: HealthScoringPolicy | None = None,
    clock: Callable[[], datetime] | None = None,
    cache_clock: Callable[[], float] | None = None,
    configure_logging: bool = False,
) -> MetricsEngine:
    """
    Build a fully wired engine owned by the caller.

    Args:
        config: Engine configuration, loaded from the environment when omitted
        persistence_hook: Called with every ingested observation
        meter_provider: Enables OpenTelemetry counters when given
        health_policy: Overrides the default health scoring rules
        clock: Wall clock used for windows, alerts and staleness
        cache_clock: Monotonic clock used for cache expiry
        configure_logging: Apply ``config.logging`` to the root logger

    Returns:
        MetricsEngine
    """
    config = config or EngineConfig.from_env()
    if configure_logging:
        setup_logging_from_config(config.logging)
    clock = clock or (lambda: datetime.now(UTC))
    telemetry = EngineTelemetry(meter_provider)

    store = MetricStore(capacity=config.store.series_capacity)
    alerts = AlertEngine(history_size=config.store.alert_history_size, clock=clock)

    cache_kwargs: dict[str, Any] = {}
    if cache_clock is not None:
        cache_kwargs["clock"] = cache_clock
    cache = AggregationCache(
        default_ttl=config.cache.default_ttl,
        max_entries=config.cache.max_entries,
        on_request=telemetry.record_cache_request,
        **cache_kwargs,
    )

    policy = health_policy or HealthScoringPolicy(
        stale_after_seconds=config.health.stale_after_seconds
    )
    scorer = HealthScorer(
        store,
        alerts,
        policy=policy,
        window=timedelta(seconds=config.health.window_seconds),
        clock=clock,
    )

    retention = config.store.retention_seconds
    scheduler = HealthSweepScheduler(
        scorer,
        store,
        cache=cache,
        retention=timedelta(seconds=retention) if retention else None,
        default_interval=config.scheduler.interval_seconds,
        clock=clock,
    )

    logger.info(
        f"Metrics engine created (capacity={config.store.series_capacity}, "
        f"cache_ttl={config.cache.default_ttl}s, telemetry={telemetry.enabled})"
    )
    return MetricsEngine(
        store=store,
        alerts=alerts,
        cache=cache,
        scorer=scorer,
        scheduler=scheduler,
        persistence_hook=persistence_hook,
        telemetry=telemetry,
        clock=clock,
    )
