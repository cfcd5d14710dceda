"""
OpenTelemetry instruments for the metrics engine.

Counts ingested and rejected observations, raised alerts and cache requests.
Without a MeterProvider no instruments are created and every record call is a
no-op.
"""

import logging
from typing import Any

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider

logger = logging.getLogger(__name__)


class EngineTelemetry:
    """Engine counters backed by an optional MeterProvider."""

    def __init__(self, meter_provider: MeterProvider | None = None) -> None:
        self.meter_provider = meter_provider
        self.meter = None
        self._instruments: dict[str, Any] = {}

        if meter_provider:
            self.meter = metrics.get_meter(__name__, "1.0.0", meter_provider=meter_provider)
            self._setup_instruments()

    @property
    def enabled(self) -> bool:
        return self.meter is not None

    def _setup_instruments(self) -> None:
        """Create the engine counters."""
        if not self.meter:
            return

        self._instruments = {
            "ingested": self.meter.create_counter(
                name="metrics_engine_ingested_total",
                description="Observations accepted by ingest",
                unit="1",
            ),
            "rejected": self.meter.create_counter(
                name="metrics_engine_rejected_total",
                description="Observations rejected as invalid",
                unit="1",
            ),
            "alerts": self.meter.create_counter(
                name="metrics_engine_alerts_total",
                description="Alerts raised by threshold evaluation",
                unit="1",
            ),
            "cache_requests": self.meter.create_counter(
                name="metrics_engine_cache_requests_total",
                description="Aggregation cache lookups by result",
                unit="1",
            ),
        }
        logger.debug("Engine telemetry instruments created")

    def record_ingested(self, category: str) -> None:
        if "ingested" in self._instruments:
            self._instruments["ingested"].add(1, {"category": category})

    def record_rejected(self, field: str | None) -> None:
        if "rejected" in self._instruments:
            self._instruments["rejected"].add(1, {"field": field or "unknown"})

    def record_alert(self, severity: str, category: str) -> None:
        if "alerts" in self._instruments:
            self._instruments["alerts"].add(1, {"severity": severity, "category": category})

    def record_cache_request(self, result: str) -> None:
        if "cache_requests" in self._instruments:
            self._instruments["cache_requests"].add(1, {"result": result})
