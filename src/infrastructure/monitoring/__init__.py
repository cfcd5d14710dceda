"""
Infrastructure Monitoring Module

Metrics aggregation and alerting engine including:
- Bounded per-series storage with retention cleanup
- Threshold alerts with explicit resolution and audit history
- Category health scoring with a periodic background sweep
- Structured logging with correlation IDs
- OpenTelemetry counters and psutil system sampling
"""

from .alert_engine import AlertEngine
from .collectors import SystemMetricsCollector
from .engine import MetricsEngine, create_metrics_engine
from .health import HealthScorer
from .logging import (
    correlation_context,
    get_correlation_id,
    mask_sensitive_data,
    setup_structured_logging,
)
from .metric_store import MetricStore
from .metrics import EngineTelemetry
from .scheduler import HealthSweepScheduler

__all__ = [
    "AlertEngine",
    "EngineTelemetry",
    "HealthScorer",
    "HealthSweepScheduler",
    "MetricStore",
    "MetricsEngine",
    "SystemMetricsCollector",
    "correlation_context",
    "create_metrics_engine",
    "get_correlation_id",
    "mask_sensitive_data",
    "setup_structured_logging",
]
