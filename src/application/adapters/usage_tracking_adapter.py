"""
Usage Tracking Adapter

Feeds template usage events and session durations into the metrics engine
under privacy rules: opted-out users and events without required consent are
dropped, IP addresses are hashed and location data is stripped before the
event's metadata reaches the engine.
"""

import hashlib
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from src.domain.entities.metric import Metric
from src.domain.exceptions import SeriesNotFoundException

from ..interfaces.metrics_engine import IMetricsEngine

logger = logging.getLogger(__name__)


class UsageEventType(Enum):
    """Kinds of template usage events."""

    VIEW = "view"
    DOWNLOAD = "download"
    INSTALL = "install"
    UNINSTALL = "uninstall"
    CONFIGURE = "configure"
    ERROR = "error"
    SHARE = "share"
    FAVORITE = "favorite"


@dataclass
class PrivacySettings:
    """Privacy rules applied before an event is recorded."""

    anonymize_ip_addresses: bool = True
    exclude_personal_data: bool = False
    consent_required: bool = True
    enable_location_tracking: bool = False


class UsageTrackingAdapter:
    """Privacy-aware usage tracking on top of the metrics engine."""

    def __init__(
        self,
        engine: IMetricsEngine,
        category: str = "usage",
        privacy: PrivacySettings | None = None,
    ) -> None:
        self.engine = engine
        self.category = category
        self.privacy = privacy or PrivacySettings()
        self._lock = threading.Lock()
        self._opted_out: set[str] = set()

    def opt_out(self, user_id: str) -> None:
        with self._lock:
            self._opted_out.add(user_id)
        logger.info("User opted out of usage tracking", extra={"category": self.category})

    def opt_in(self, user_id: str) -> None:
        with self._lock:
            self._opted_out.discard(user_id)

    def is_tracking_allowed(self, consent_given: bool, user_id: str | None = None) -> bool:
        """Check opt-out and consent rules for one event."""
        if user_id is not None:
            with self._lock:
                if user_id in self._opted_out:
                    return False
        if self.privacy.consent_required and not consent_given:
            return False
        return True

    def track_event(
        self,
        template_id: str,
        event_type: UsageEventType | str,
        session_id: str,
        consent_given: bool = False,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> bool:
        """
        Record one usage event as a count of 1 in ``events.<type>``.

        Args:
            template_id: Template the event refers to
            event_type: Kind of event
            session_id: Session identifier
            consent_given: Whether the user consented to tracking
            user_id: Optional user identifier
            metadata: Optional event details
            timestamp: Event time, defaults to now

        Returns:
            True if the event was recorded, False if privacy rules dropped it
        """
        event_type = UsageEventType(event_type)
        if not self.is_tracking_allowed(consent_given, user_id):
            logger.debug(
                f"Usage event {event_type.value} dropped by privacy settings",
                extra={"category": self.category},
            )
            return False

        details = self._sanitize(
            {"template_id": template_id, "session_id": session_id, **(metadata or {})}
        )
        if user_id is not None and not self.privacy.exclude_personal_data:
            details["user_id"] = user_id

        self.engine.ingest(
            Metric(
                name=f"events.{event_type.value}",
                value=1.0,
                category=self.category,
                unit="count",
                timestamp=timestamp or datetime.now(UTC),
                metadata=details,
            )
        )
        return True

    def track_session(
        self, session_id: str, duration_seconds: float, timestamp: datetime | None = None
    ) -> None:
        """Record how long a session lasted."""
        if duration_seconds < 0:
            raise ValueError("duration_seconds must not be negative")
        self.engine.ingest(
            Metric(
                name="session_duration_seconds",
                value=duration_seconds,
                category=self.category,
                unit="s",
                timestamp=timestamp or datetime.now(UTC),
                metadata={"session_id": session_id},
            )
        )

    def _sanitize(self, details: dict[str, Any]) -> dict[str, Any]:
        sanitized = dict(details)
        ip_address = sanitized.get("ip_address")
        if self.privacy.exclude_personal_data:
            sanitized.pop("ip_address", None)
            sanitized.pop("user_agent", None)
        elif ip_address and self.privacy.anonymize_ip_addresses:
            sanitized["ip_address"] = self.hash_ip_address(str(ip_address))
        if not self.privacy.enable_location_tracking:
            sanitized.pop("location", None)
        return sanitized

    @staticmethod
    def hash_ip_address(ip_address: str) -> str:
        digest = hashlib.sha256(ip_address.encode("utf-8")).hexdigest()
        return f"hashed_{digest[:16]}"

    def usage_overview(self, window: timedelta = timedelta(days=7)) -> dict[str, Any]:
        """
        Event counts per type and session statistics over ``window``.

        Returns:
            Dictionary with ``total_events``, ``events`` per type and, when
            sessions were tracked, ``session_duration`` statistics
        """
        since = datetime.now(UTC) - window
        counts: dict[str, int] = {}
        for event_type in UsageEventType:
            try:
                events = self.engine.query(self.category, f"events.{event_type.value}", start=since)
            except SeriesNotFoundException:
                continue
            if events:
                counts[event_type.value] = len(events)

        overview: dict[str, Any] = {
            "total_events": sum(counts.values()),
            "events": counts,
        }
        try:
            overview["session_duration"] = self.engine.aggregate(
                self.category, "session_duration_seconds", start=since
            ).to_dict()
        except SeriesNotFoundException:
            pass
        return overview
