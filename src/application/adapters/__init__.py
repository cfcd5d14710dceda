"""Producer adapters translating domain-specific measurements into engine calls."""

from .performance_metrics_adapter import PerformanceMetricsAdapter
from .usage_tracking_adapter import PrivacySettings, UsageEventType, UsageTrackingAdapter

__all__ = [
    "PerformanceMetricsAdapter",
    "PrivacySettings",
    "UsageEventType",
    "UsageTrackingAdapter",
]
