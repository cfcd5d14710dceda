"""Unit tests for the Metric entity and SeriesKey."""

import math
from datetime import UTC, datetime, timedelta, timezone

import pytest

from src.domain.entities.metric import Metric, SeriesKey
from src.domain.exceptions import InvalidMetricException


class TestSeriesKey:
    """Test series key identity and parsing."""

    def test_string_form(self):
        """Test keys render as category:name."""
        assert str(SeriesKey("build", "time")) == "build:time"

    def test_parse_round_trip(self):
        """Test parsing a rendered key."""
        assert SeriesKey.parse("build:time") == SeriesKey("build", "time")

    def test_parse_keeps_colons_in_name(self):
        """Test only the first colon separates category from name."""
        key = SeriesKey.parse("usage:events.view:extra")

        assert key.category == "usage"
        assert key.name == "events.view:extra"

    @pytest.mark.parametrize("raw", ["buildtime", ":time", "build:"])
    def test_parse_rejects_malformed(self, raw):
        """Test malformed keys are rejected."""
        with pytest.raises(ValueError):
            SeriesKey.parse(raw)

    def test_keys_are_ordered(self):
        """Test keys sort by category then name."""
        keys = [SeriesKey("b", "a"), SeriesKey("a", "z"), SeriesKey("a", "b")]

        assert sorted(keys) == [SeriesKey("a", "b"), SeriesKey("a", "z"), SeriesKey("b", "a")]


class TestMetricCreation:
    """Test metric construction."""

    def test_defaults(self):
        """Test default unit, metadata, id and timestamp."""
        metric = Metric(name="time", value=1.0, category="build")

        assert metric.unit == ""
        assert dict(metric.metadata) == {}
        assert metric.id
        assert metric.timestamp.tzinfo is not None

    def test_ids_are_unique_per_observation(self):
        """Test two observations of the same series get different ids."""
        first = Metric(name="time", value=1.0, category="build")
        second = Metric(name="time", value=1.0, category="build")

        assert first.id != second.id
        assert first.key == second.key

    def test_naive_timestamp_is_utc(self):
        """Test naive timestamps are interpreted as UTC."""
        metric = Metric(name="time", value=1.0, category="build", timestamp=datetime(2026, 1, 1, 8))

        assert metric.timestamp == datetime(2026, 1, 1, 8, tzinfo=UTC)

    def test_aware_timestamp_is_kept(self):
        """Test aware timestamps keep their offset."""
        tz = timezone(timedelta(hours=2))
        stamp = datetime(2026, 1, 1, 8, tzinfo=tz)

        metric = Metric(name="time", value=1.0, category="build", timestamp=stamp)

        assert metric.timestamp.tzinfo is tz

    def test_metric_is_immutable(self):
        """Test fields cannot be reassigned."""
        metric = Metric(name="time", value=1.0, category="build")

        with pytest.raises(AttributeError):
            metric.value = 2.0  # type: ignore[misc]

    def test_metadata_is_read_only_copy(self):
        """Test metadata is detached from the caller's dict and read-only."""
        source = {"endpoint": "/api"}
        metric = Metric(name="time", value=1.0, category="build", metadata=source)

        source["endpoint"] = "/changed"

        assert metric.metadata["endpoint"] == "/api"
        with pytest.raises(TypeError):
            metric.metadata["endpoint"] = "/x"  # type: ignore[index]

    def test_to_dict(self):
        """Test dictionary form."""
        stamp = datetime(2026, 1, 1, tzinfo=UTC)
        metric = Metric(
            name="time", value=2.5, category="build", unit="s", timestamp=stamp, metadata={"a": 1}
        )

        data = metric.to_dict()

        assert data["name"] == "time"
        assert data["value"] == 2.5
        assert data["unit"] == "s"
        assert data["category"] == "build"
        assert data["timestamp"] == stamp.isoformat()
        assert data["metadata"] == {"a": 1}


class TestMetricValidation:
    """Test validation of malformed observations."""

    def test_valid_metric_passes(self):
        """Test a well-formed metric validates."""
        Metric(name="time", value=3, category="build").validate()

    @pytest.mark.parametrize("category", ["", "   "])
    def test_blank_category(self, category):
        """Test blank category is rejected."""
        with pytest.raises(InvalidMetricException) as exc_info:
            Metric(name="time", value=1.0, category=category).validate()

        assert exc_info.value.field == "category"

    def test_blank_name(self):
        """Test blank name is rejected."""
        with pytest.raises(InvalidMetricException) as exc_info:
            Metric(name="", value=1.0, category="build").validate()

        assert exc_info.value.field == "name"

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_value(self, value):
        """Test NaN and infinities are rejected."""
        with pytest.raises(InvalidMetricException) as exc_info:
            Metric(name="time", value=value, category="build").validate()

        assert exc_info.value.field == "value"
        assert "finite" in exc_info.value.reason

    @pytest.mark.parametrize("value", ["12", None, True])
    def test_non_numeric_value(self, value):
        """Test strings, None and booleans are rejected."""
        with pytest.raises(InvalidMetricException):
            Metric(name="time", value=value, category="build").validate()  # type: ignore[arg-type]

    def test_non_datetime_timestamp(self):
        """Test a timestamp that is not a datetime is rejected."""
        metric = Metric(name="time", value=1.0, category="build", timestamp="yesterday")  # type: ignore[arg-type]

        with pytest.raises(InvalidMetricException) as exc_info:
            metric.validate()

        assert exc_info.value.field == "timestamp"
