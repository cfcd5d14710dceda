"""
Alert lifecycle management.

Evaluates observations against the threshold registry, keeps open alerts until
they are resolved explicitly, and retains a bounded history of resolved alerts
for audit.
"""

import logging
import threading
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime

from src.domain.entities.alert import Alert, AlertSeverity
from src.domain.entities.metric import Metric
from src.domain.exceptions import AlertNotFoundException
from src.domain.services.threshold_policy_service import ThresholdPolicy, ThresholdPolicyService

logger = logging.getLogger(__name__)


class AlertEngine:
    """
    Threshold evaluation and alert bookkeeping.

    One alert is raised per breaching observation; there is no duplicate
    suppression and no automatic resolution.
    """

    DEFAULT_HISTORY_SIZE = 1000

    def __init__(
        self,
        threshold_service: ThresholdPolicyService | None = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.thresholds = threshold_service or ThresholdPolicyService()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._open: dict[str, Alert] = {}
        self._history: deque[Alert] = deque(maxlen=history_size)

    def set_threshold(
        self, category: str, name: str, warning: float, critical: float
    ) -> ThresholdPolicy:
        """Register or replace thresholds; see ThresholdPolicyService.set_threshold."""
        policy = self.thresholds.set_threshold(category, name, warning, critical)
        logger.info(
            f"Threshold set for {policy.key}: warning={policy.warning}, critical={policy.critical}",
            extra={"category": category, "metric_name": name},
        )
        return policy

    def evaluate(self, metric: Metric) -> Alert | None:
        """
        Evaluate an observation and raise an alert on breach.

        Args:
            metric: Ingested observation

        Returns:
            Snapshot of the new alert, or None when no threshold is met
        """
        breach = self.thresholds.classify(metric.key, metric.value)
        if breach is None:
            return None

        alert = Alert(
            metric_key=breach.key,
            threshold=breach.threshold_value,
            current_value=breach.current_value,
            severity=breach.severity,
            message=breach.message,
            timestamp=self._clock(),
            metric_id=metric.id,
        )
        with self._lock:
            self._open[alert.id] = alert

        logger.warning(
            alert.message,
            extra={
                "operation_type": "alert_raised",
                "category": metric.category,
                "metric_name": metric.name,
                "alert_id": alert.id,
                "severity": alert.severity.value,
            },
        )
        return alert.snapshot()

    def resolve(self, alert_id: str, resolution: str | None = None) -> Alert:
        """
        Resolve an open alert.

        Args:
            alert_id: Alert identifier
            resolution: Optional note kept with the resolved alert

        Returns:
            Snapshot of the resolved alert

        Raises:
            AlertNotFoundException: If the id is unknown or already resolved
        """
        with self._lock:
            alert = self._open.pop(alert_id, None)
            if alert is None:
                already_resolved = any(a.id == alert_id for a in self._history)
                raise AlertNotFoundException(alert_id, already_resolved=already_resolved)
            alert.resolve(resolution=resolution, at=self._clock())
            self._history.append(alert)
            resolved = alert.snapshot()

        logger.info(
            f"Alert {alert_id} resolved for {resolved.metric_key}",
            extra={
                "operation_type": "alert_resolved",
                "category": resolved.category,
                "metric_name": resolved.metric_key.name,
                "alert_id": alert_id,
                "resolution": resolution,
            },
        )
        return resolved

    def active_alerts(self) -> list[Alert]:
        """Open alerts in creation order."""
        with self._lock:
            return [alert.snapshot() for alert in self._open.values()]

    def alerts_for(self, category: str) -> list[Alert]:
        """Open alerts of one category in creation order."""
        return [alert for alert in self.active_alerts() if alert.category == category]

    def open_counts(self, category: str) -> dict[AlertSeverity, int]:
        """Number of open alerts of a category per severity."""
        counts = {severity: 0 for severity in AlertSeverity}
        with self._lock:
            for alert in self._open.values():
                if alert.category == category:
                    counts[alert.severity] += 1
        return counts

    def alert_history(self, limit: int | None = None) -> list[Alert]:
        """
        Resolved alerts, most recently resolved first.

        Args:
            limit: Maximum number of alerts to return
        """
        with self._lock:
            history = [alert.snapshot() for alert in reversed(self._history)]
        return history if limit is None else history[: max(limit, 0)]
