"""Unit tests for the Alert entity."""

from datetime import UTC, datetime

import pytest

from src.domain.entities.alert import Alert, AlertSeverity
from src.domain.entities.metric import SeriesKey


@pytest.fixture
def alert():
    return Alert(
        metric_key=SeriesKey("build", "time"),
        threshold=600.0,
        current_value=650.0,
        severity=AlertSeverity.CRITICAL,
        message="CRITICAL: build:time",
    )


class TestAlert:
    """Test alert lifecycle."""

    def test_new_alert_is_open(self, alert):
        """Test alerts start open."""
        assert alert.is_open
        assert not alert.resolved
        assert alert.resolved_at is None
        assert alert.category == "build"

    def test_resolve(self, alert):
        """Test resolution records time and note."""
        at = datetime(2026, 1, 1, tzinfo=UTC)

        alert.resolve("rolled back", at=at)

        assert alert.resolved
        assert not alert.is_open
        assert alert.resolved_at == at
        assert alert.resolution == "rolled back"

    def test_resolve_twice_fails(self, alert):
        """Test an alert cannot be resolved twice."""
        alert.resolve()

        with pytest.raises(ValueError, match="already resolved"):
            alert.resolve()

    def test_snapshot_is_detached(self, alert):
        """Test snapshots do not follow later changes."""
        snapshot = alert.snapshot()

        alert.resolve()

        assert snapshot.is_open
        assert snapshot.id == alert.id

    def test_to_dict(self, alert):
        """Test dictionary form."""
        data = alert.to_dict()

        assert data["metric_key"] == "build:time"
        assert data["severity"] == "critical"
        assert data["resolved"] is False
        assert data["resolved_at"] is None
