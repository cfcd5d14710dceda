"""Health value objects for a category."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class HealthLevel(Enum):
    """Category health levels."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


@dataclass(frozen=True)
class HealthSubScores:
    """Per-dimension scores, each in [0, 100]."""

    availability: float
    performance: float
    reliability: float

    def mean(self) -> float:
        return (self.availability + self.performance + self.reliability) / 3

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class HealthStatus:
    """Health snapshot of one category, always derived, never mutated."""

    category: str
    status: HealthLevel
    score: int
    metrics: HealthSubScores
    last_checked: datetime
    open_alerts: int = 0

    @property
    def is_healthy(self) -> bool:
        return self.status is HealthLevel.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "category": self.category,
            "status": self.status.value,
            "score": self.score,
            "metrics": self.metrics.to_dict(),
            "last_checked": self.last_checked.isoformat(),
            "open_alerts": self.open_alerts,
        }
