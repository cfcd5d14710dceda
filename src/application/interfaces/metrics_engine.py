"""
Metrics Engine Interface Definitions

Defines the contract producer adapters use to feed observations into the
metrics engine and read aggregates back out. Following clean architecture
principles with protocol-based interfaces.
"""

# Standard library imports
from abc import abstractmethod
from datetime import datetime, timedelta
from typing import Protocol

# Local imports
from src.domain.entities.alert import Alert
from src.domain.entities.metric import Metric
from src.domain.services.threshold_policy_service import ThresholdPolicy
from src.domain.value_objects.health import HealthStatus
from src.domain.value_objects.trend import Trend, TrendStatistics


class IMetricsEngine(Protocol):
    """
    Interface of the metrics aggregation and alerting engine.

    Implementations raise InvalidMetricException for malformed observations
    and SeriesNotFoundException for reads of unknown series or categories.
    """

    @abstractmethod
    def ingest(self, metric: Metric) -> Alert | None:
        """Store an observation; returns the alert it raised, if any."""
        ...

    @abstractmethod
    def query(
        self,
        category: str,
        name: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Metric]:
        """Observations of a series within ``[start, end]``, oldest first."""
        ...

    @abstractmethod
    def set_threshold(
        self, category: str, name: str, warning: float, critical: float
    ) -> ThresholdPolicy:
        """Register or replace the thresholds of a series."""
        ...

    @abstractmethod
    def get_threshold(self, category: str, name: str) -> ThresholdPolicy | None:
        """Thresholds of a series, if any."""
        ...

    @abstractmethod
    def trend(self, category: str, name: str, window: timedelta) -> Trend:
        """Trend of a series over the trailing window."""
        ...

    @abstractmethod
    def aggregate(
        self,
        category: str,
        name: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> TrendStatistics:
        """Summary statistics of a series within a range."""
        ...

    @abstractmethod
    def health(self, category: str) -> HealthStatus:
        """Current health of a category."""
        ...
