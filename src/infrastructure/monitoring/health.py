"""
Category Health Scoring

Pull-based health evaluation: every call recomputes a category's status from
its recent series and its open alerts, records it as the category's latest
status, and logs a transition when the level changed since the previous
evaluation.
"""

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from src.domain.entities.alert import AlertSeverity
from src.domain.exceptions import SeriesNotFoundException
from src.domain.services.health_scoring_policy import CategorySignals, HealthScoringPolicy
from src.domain.value_objects.health import HealthLevel, HealthStatus

from .alert_engine import AlertEngine
from .metric_store import MetricStore

logger = logging.getLogger(__name__)

_SEVERITY_RANK = {HealthLevel.HEALTHY: 0, HealthLevel.DEGRADED: 1, HealthLevel.CRITICAL: 2}


class HealthScorer:
    """Computes HealthStatus per category from store and alert state."""

    def __init__(
        self,
        store: MetricStore,
        alerts: AlertEngine,
        policy: HealthScoringPolicy | None = None,
        window: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.alerts = alerts
        self.policy = policy or HealthScoringPolicy()
        self.window = window
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._last: dict[str, HealthStatus] = {}

    def collect_signals(self, category: str, now: datetime) -> CategorySignals:
        """Gather scoring inputs for a category at ``now``."""
        latest = self.store.latest_timestamp(category)
        age = max(0.0, (now - latest).total_seconds()) if latest is not None else None

        observations = []
        window_start = now - self.window
        for threshold in self.alerts.thresholds.thresholds_for(category):
            if not self.store.has_series(category, threshold.name):
                continue
            recent = self.store.query(category, threshold.name, start=window_start, end=now)
            if recent:
                average = sum(m.value for m in recent) / len(recent)
                observations.append((average, threshold))

        counts = self.alerts.open_counts(category)
        return CategorySignals(
            category=category,
            observations=observations,
            open_critical_alerts=counts[AlertSeverity.CRITICAL],
            open_warning_alerts=counts[AlertSeverity.WARNING],
            seconds_since_last_observation=age,
        )

    def score(self, category: str) -> HealthStatus:
        """
        Recompute the health of a category.

        Args:
            category: Category to evaluate

        Returns:
            Fresh HealthStatus

        Raises:
            SeriesNotFoundException: If the category never received data
        """
        if not self.store.has_category(category):
            raise SeriesNotFoundException(category)

        now = self._clock()
        status = self.policy.evaluate(self.collect_signals(category, now), now)

        with self._lock:
            previous = self._last.get(category)
            self._last[category] = status

        if previous is not None and previous.status != status.status:
            self._log_transition(previous, status)
        return status

    def _log_transition(self, previous: HealthStatus, current: HealthStatus) -> None:
        worse = _SEVERITY_RANK[current.status] > _SEVERITY_RANK[previous.status]
        logger.log(
            logging.WARNING if worse else logging.INFO,
            f"Health of {current.category} changed {previous.status.value} -> "
            f"{current.status.value} (score {previous.score} -> {current.score})",
            extra={
                "operation_type": "health_transition",
                "category": current.category,
                "previous_status": previous.status.value,
                "status": current.status.value,
                "score": current.score,
            },
        )

    def last_health(self, category: str) -> HealthStatus | None:
        """Status from the latest evaluation, without recomputing."""
        with self._lock:
            return self._last.get(category)

    def overview(self) -> dict[str, HealthStatus]:
        """Latest status of every evaluated category."""
        with self._lock:
            return dict(sorted(self._last.items()))
