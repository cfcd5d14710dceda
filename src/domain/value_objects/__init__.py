"""Immutable value objects derived from series."""

from .health import HealthLevel, HealthStatus, HealthSubScores
from .trend import Trend, TrendDirection, TrendStatistics

__all__ = [
    "HealthLevel",
    "HealthStatus",
    "HealthSubScores",
    "Trend",
    "TrendDirection",
    "TrendStatistics",
]
