"""
Metric Entity - A single time-stamped numeric observation
"""

from __future__ import annotations

# Standard library imports
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from numbers import Real
from types import MappingProxyType
from typing import Any
from uuid import uuid4

from ..exceptions import InvalidMetricException


@dataclass(frozen=True, order=True)
class SeriesKey:
    """Identity of a series: one category plus one metric name."""

    category: str
    name: str

    def __str__(self) -> str:
        return f"{self.category}:{self.name}"

    @classmethod
    def parse(cls, key: str) -> SeriesKey:
        """Parse a ``category:name`` string."""
        category, sep, name = key.partition(":")
        if not sep or not category or not name:
            raise ValueError(f"Series key must look like 'category:name', got {key!r}")
        return cls(category=category, name=name)


@dataclass(frozen=True)
class Metric:
    """
    Metric entity representing one observation.

    Identity of the series is ``(category, name)``; ``id`` is unique per
    observation. Instances are immutable, including their metadata.
    """

    name: str
    value: float
    category: str
    unit: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        # Naive timestamps are taken to be UTC
        if isinstance(self.timestamp, datetime) and self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=UTC))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata or {})))

    @property
    def key(self) -> SeriesKey:
        """Series key this observation belongs to."""
        return SeriesKey(self.category, self.name)

    def validate(self) -> None:
        """
        Validate the observation before ingestion.

        Raises:
            InvalidMetricException: If category/name are blank, the value is not
                a finite real number, or the timestamp is not a datetime
        """
        if not isinstance(self.category, str) or not self.category.strip():
            raise InvalidMetricException("category is required", "category", self.category)
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidMetricException("name is required", "name", self.name)
        if isinstance(self.value, bool) or not isinstance(self.value, Real):
            raise InvalidMetricException("value must be a number", "value", self.value)
        if not math.isfinite(self.value):
            raise InvalidMetricException("value must be finite", "value", self.value)
        if not isinstance(self.timestamp, datetime):
            raise InvalidMetricException("timestamp must be a datetime", "timestamp", self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "timestamp": self.timestamp.isoformat(),
            "category": self.category,
            "metadata": dict(self.metadata),
        }
