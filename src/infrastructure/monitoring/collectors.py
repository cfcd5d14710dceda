"""
System metrics collection.

Samples host and process resource usage with psutil and ingests it into the
``system`` category of a metrics engine.
"""

import logging
from datetime import UTC, datetime

import psutil

from src.domain.entities.alert import Alert
from src.domain.entities.metric import Metric

from .engine import MetricsEngine

logger = logging.getLogger(__name__)


class SystemMetricsCollector:
    """Collects system-level metrics."""

    # name -> (warning, critical)
    DEFAULT_THRESHOLDS: dict[str, tuple[float, float]] = {
        "cpu_percent": (80.0, 95.0),
        "memory_percent": (85.0, 95.0),
        "disk_percent": (90.0, 97.0),
    }

    def __init__(
        self, engine: MetricsEngine, category: str = "system", disk_path: str = "/"
    ) -> None:
        self.engine = engine
        self.category = category
        self.disk_path = disk_path
        self.process = psutil.Process()

    def install_default_thresholds(self) -> None:
        for name, (warning, critical) in self.DEFAULT_THRESHOLDS.items():
            self.engine.set_threshold(self.category, name, warning, critical)

    def collect_cpu_metrics(self) -> dict[str, tuple[float, str]]:
        """Collect CPU-related metrics."""
        try:
            return {
                "cpu_percent": (psutil.cpu_percent(interval=None), "%"),
                "process_cpu_percent": (self.process.cpu_percent(), "%"),
                "process_threads": (float(self.process.num_threads()), ""),
            }
        except psutil.Error as e:
            logger.warning(f"Failed to collect CPU metrics: {e}")
            return {}

    def collect_memory_metrics(self) -> dict[str, tuple[float, str]]:
        """Collect memory-related metrics."""
        try:
            memory = psutil.virtual_memory()
            return {
                "memory_percent": (memory.percent, "%"),
                "process_memory_rss": (float(self.process.memory_info().rss), "bytes"),
            }
        except psutil.Error as e:
            logger.warning(f"Failed to collect memory metrics: {e}")
            return {}

    def collect_disk_metrics(self) -> dict[str, tuple[float, str]]:
        """Collect disk usage of ``disk_path``."""
        try:
            return {"disk_percent": (psutil.disk_usage(self.disk_path).percent, "%")}
        except (psutil.Error, OSError) as e:
            logger.warning(f"Failed to collect disk metrics: {e}")
            return {}

    def collect(self) -> list[Alert]:
        """
        Take one sample of every system metric and ingest it.

        Returns:
            Alerts raised by the sample
        """
        timestamp = datetime.now(UTC)
        readings = {
            **self.collect_cpu_metrics(),
            **self.collect_memory_metrics(),
            **self.collect_disk_metrics(),
        }

        alerts = []
        for name, (value, unit) in readings.items():
            alert = self.engine.ingest(
                Metric(
                    name=name,
                    value=value,
                    category=self.category,
                    unit=unit,
                    timestamp=timestamp,
                    metadata={"pid": self.process.pid},
                )
            )
            if alert is not None:
                alerts.append(alert)

        logger.debug(f"Collected {len(readings)} system metrics")
        return alerts
