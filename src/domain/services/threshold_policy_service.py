"""
Threshold policy domain service.

This module holds the per-series warning/critical thresholds and the rule that
classifies an observation against them. Thresholds follow the "higher is worse"
convention for every metric kind; producers invert metrics where lower is worse
(uptime percentages, hit ratios) before ingesting them.
"""

import math
import threading
from dataclasses import dataclass

from ..entities.alert import AlertSeverity
from ..entities.metric import SeriesKey
from ..exceptions import InvalidThresholdException


@dataclass(frozen=True)
class ThresholdPolicy:
    """
    Threshold policy definition for one series.

    Encapsulates the warning and critical limits of a ``(category, name)`` key.
    """

    key: SeriesKey
    warning: float
    critical: float

    @property
    def category(self) -> str:
        return self.key.category

    @property
    def name(self) -> str:
        return self.key.name


@dataclass(frozen=True)
class ThresholdBreach:
    """
    Result of classifying one value against a policy.
    """

    key: SeriesKey
    severity: AlertSeverity
    threshold_value: float
    current_value: float
    message: str


class ThresholdPolicyService:
    """
    Domain service for threshold registration and breach classification.

    A series without a registered policy never breaches. Classification picks
    exactly one severity per value: critical takes precedence over warning.
    """

    def __init__(self, policies: list[ThresholdPolicy] | None = None) -> None:
        """
        Initialize threshold policy service.

        Args:
            policies: Optional initial policies
        """
        self._lock = threading.Lock()
        self._policies: dict[SeriesKey, ThresholdPolicy] = {}
        for policy in policies or []:
            self._policies[policy.key] = policy

    def set_threshold(
        self, category: str, name: str, warning: float, critical: float
    ) -> ThresholdPolicy:
        """
        Register or replace the thresholds of a series.

        Args:
            category: Series category
            name: Metric name
            warning: Value at or above which a warning is raised
            critical: Value at or above which a critical alert is raised

        Returns:
            The stored policy

        Raises:
            InvalidThresholdException: If a limit is not finite or warning exceeds critical
        """
        for label, limit in (("warning", warning), ("critical", critical)):
            if isinstance(limit, bool) or not isinstance(limit, (int, float)):
                raise InvalidThresholdException(
                    category, name, warning, critical, f"{label} must be a number"
                )
            if not math.isfinite(limit):
                raise InvalidThresholdException(
                    category, name, warning, critical, f"{label} must be finite"
                )
        if warning > critical:
            raise InvalidThresholdException(
                category, name, warning, critical, "warning must not exceed critical"
            )

        policy = ThresholdPolicy(
            key=SeriesKey(category, name), warning=float(warning), critical=float(critical)
        )
        with self._lock:
            self._policies[policy.key] = policy
        return policy

    def remove_threshold(self, category: str, name: str) -> bool:
        """
        Remove the thresholds of a series.

        Returns:
            True if a policy was removed
        """
        with self._lock:
            return self._policies.pop(SeriesKey(category, name), None) is not None

    def get_threshold(self, category: str, name: str) -> ThresholdPolicy | None:
        """Get the policy of a series, if any."""
        with self._lock:
            return self._policies.get(SeriesKey(category, name))

    def thresholds(self) -> list[ThresholdPolicy]:
        """All registered policies ordered by series key."""
        with self._lock:
            return [self._policies[key] for key in sorted(self._policies)]

    def thresholds_for(self, category: str) -> list[ThresholdPolicy]:
        """Policies registered under one category."""
        return [p for p in self.thresholds() if p.category == category]

    def classify(self, key: SeriesKey, value: float) -> ThresholdBreach | None:
        """
        Classify a value against the policy of its series.

        Args:
            key: Series key
            value: Observed value

        Returns:
            ThresholdBreach if the value reaches a limit, None otherwise
        """
        policy = self.get_threshold(key.category, key.name)
        if policy is None:
            return None

        if value >= policy.critical:
            severity, limit = AlertSeverity.CRITICAL, policy.critical
        elif value >= policy.warning:
            severity, limit = AlertSeverity.WARNING, policy.warning
        else:
            return None

        return ThresholdBreach(
            key=key,
            severity=severity,
            threshold_value=limit,
            current_value=value,
            message=self._format_breach_message(key, value, limit, severity),
        )

    def _format_breach_message(
        self, key: SeriesKey, current_value: float, threshold_value: float, severity: AlertSeverity
    ) -> str:
        """Format a human-readable breach message."""
        return (
            f"{severity.value.upper()}: Metric '{key}' met or exceeded threshold. "
            f"Current value: {current_value:.2f}, Threshold: {threshold_value:.2f}"
        )
