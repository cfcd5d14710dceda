"""Domain entities with identity."""

from .alert import Alert, AlertSeverity
from .metric import Metric, SeriesKey

__all__ = ["Alert", "AlertSeverity", "Metric", "SeriesKey"]
