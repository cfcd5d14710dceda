"""Performance Metrics Adapter - request and page performance into the metrics engine."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from src.domain.entities.alert import Alert
from src.domain.entities.metric import Metric
from src.domain.exceptions import SeriesNotFoundException

from ..interfaces.metrics_engine import IMetricsEngine

logger = logging.getLogger(__name__)


class PerformanceMetricsAdapter:
    """Translates application performance measurements into engine observations.

    Every measurement lands in one category (default ``performance``). Metrics
    where lower is worse are inverted before ingestion so that the engine's
    "higher is worse" thresholds apply unchanged.
    """

    # name -> (warning, critical)
    DEFAULT_THRESHOLDS: dict[str, tuple[float, float]] = {
        "response_time_ms": (1000.0, 3000.0),
        "error_rate_percent": (5.0, 10.0),
        "page_load_time_ms": (3000.0, 6000.0),
        # 10 - satisfaction score on a 0-10 scale
        "dissatisfaction": (3.0, 5.0),
    }

    SATISFACTION_SCALE = 10.0

    def __init__(self, engine: IMetricsEngine, category: str = "performance") -> None:
        """Initialize the adapter."""
        self.engine = engine
        self.category = category

    def install_default_thresholds(self, overwrite: bool = False) -> None:
        """Register DEFAULT_THRESHOLDS, keeping existing ones unless ``overwrite``."""
        for name, (warning, critical) in self.DEFAULT_THRESHOLDS.items():
            if not overwrite and self.engine.get_threshold(self.category, name) is not None:
                continue
            self.engine.set_threshold(self.category, name, warning, critical)

    # --- Recording ---

    def record_request(
        self,
        endpoint: str,
        response_time_ms: float,
        status_code: int = 200,
        timestamp: datetime | None = None,
    ) -> Alert | None:
        """Record one request's latency, tagged with its endpoint."""
        return self._ingest(
            "response_time_ms",
            response_time_ms,
            "ms",
            timestamp,
            {"endpoint": endpoint, "status_code": status_code},
        )

    def record_snapshot(
        self,
        response_time_ms: float,
        throughput_rps: float,
        error_rate_percent: float,
        active_connections: int | None = None,
        timestamp: datetime | None = None,
    ) -> list[Alert]:
        """Record an aggregate snapshot of the application; returns raised alerts."""
        timestamp = timestamp or datetime.now(UTC)
        readings: list[tuple[str, float, str]] = [
            ("response_time_ms", response_time_ms, "ms"),
            ("throughput_rps", throughput_rps, "req/s"),
            ("error_rate_percent", error_rate_percent, "%"),
        ]
        if active_connections is not None:
            readings.append(("active_connections", float(active_connections), ""))

        alerts = []
        for name, value, unit in readings:
            alert = self._ingest(name, value, unit, timestamp)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def record_page_load(
        self, page: str, load_time_ms: float, timestamp: datetime | None = None
    ) -> Alert | None:
        return self._ingest("page_load_time_ms", load_time_ms, "ms", timestamp, {"page": page})

    def record_satisfaction(self, score: float, timestamp: datetime | None = None) -> Alert | None:
        """Record a 0-10 satisfaction score as its inverse, where higher is worse."""
        if not 0.0 <= score <= self.SATISFACTION_SCALE:
            raise ValueError(f"Satisfaction score must be within 0-10, got {score}")
        return self._ingest(
            "dissatisfaction",
            self.SATISFACTION_SCALE - score,
            "",
            timestamp,
            {"satisfaction_score": score},
        )

    def _ingest(
        self,
        name: str,
        value: float,
        unit: str,
        timestamp: datetime | None,
        metadata: dict[str, Any] | None = None,
    ) -> Alert | None:
        metric = Metric(
            name=name,
            value=value,
            category=self.category,
            unit=unit,
            timestamp=timestamp or datetime.now(UTC),
            metadata=metadata or {},
        )
        return self.engine.ingest(metric)

    # --- Reads ---

    def summary(self, window: timedelta = timedelta(hours=1)) -> dict[str, Any]:
        """Trend of every recorded performance series over ``window``."""
        summary: dict[str, Any] = {}
        for name in ("response_time_ms", "throughput_rps", "error_rate_percent", "page_load_time_ms"):
            try:
                summary[name] = self.engine.trend(self.category, name, window).to_dict()
            except SeriesNotFoundException:
                continue
        if summary:
            summary["health"] = self.engine.health(self.category).to_dict()
        return summary
