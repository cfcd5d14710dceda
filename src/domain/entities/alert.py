"""
Alert Entity - A threshold breach awaiting explicit resolution
"""

from __future__ import annotations

# Standard library imports
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from .metric import SeriesKey


class AlertSeverity(Enum):
    """Alert severity levels"""

    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class Alert:
    """
    Alert entity raised when an observation crosses a threshold.

    An alert stays open until it is resolved explicitly; a later good reading
    never closes it.
    """

    metric_key: SeriesKey
    threshold: float
    current_value: float
    severity: AlertSeverity
    message: str
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metric_id: str | None = None
    resolved: bool = False
    resolved_at: datetime | None = None
    resolution: str | None = None

    @property
    def category(self) -> str:
        return self.metric_key.category

    @property
    def is_open(self) -> bool:
        return not self.resolved

    def resolve(self, resolution: str | None = None, at: datetime | None = None) -> None:
        """Mark the alert resolved. Callers check ``is_open`` first."""
        if self.resolved:
            raise ValueError(f"Alert {self.id} is already resolved")
        self.resolved = True
        self.resolved_at = at or datetime.now(UTC)
        self.resolution = resolution

    def snapshot(self) -> Alert:
        """Detached copy safe to hand to callers."""
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "metric_key": str(self.metric_key),
            "metric_id": self.metric_id,
            "threshold": self.threshold,
            "current_value": self.current_value,
            "severity": self.severity.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "resolved": self.resolved,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolution": self.resolution,
        }
