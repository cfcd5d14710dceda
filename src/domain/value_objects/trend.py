"""Trend value objects derived from a window of a series."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import timedelta
from enum import Enum
from typing import Any

from ..entities.metric import SeriesKey


class TrendDirection(Enum):
    """Direction of a series over its window."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass(frozen=True)
class TrendStatistics:
    """Summary statistics over a window. All zero for an empty window."""

    average: float = 0.0
    median: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    min: float = 0.0
    max: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class Trend:
    """Statistics and direction of one series over a period."""

    key: SeriesKey
    period: timedelta
    data_points: int
    statistics: TrendStatistics
    direction: TrendDirection

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "key": str(self.key),
            "period_seconds": self.period.total_seconds(),
            "data_points": self.data_points,
            "statistics": self.statistics.to_dict(),
            "direction": self.direction.value,
        }
