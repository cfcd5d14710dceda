"""
Bounded in-memory series storage.

Each ``(category, name)`` series lives in a fixed-capacity deque guarded by its
own re-entrant lock. Appends past capacity evict the oldest observation. Reads
sort by timestamp, so out-of-order arrivals never corrupt range queries, and
always return copies.
"""

import logging
import threading
from collections import deque
from datetime import UTC, datetime

from src.domain.entities.metric import Metric, SeriesKey
from src.domain.exceptions import SeriesNotFoundException

logger = logging.getLogger(__name__)


class _SeriesBuffer:
    """Buffer plus the lock that linearizes writes to it."""

    __slots__ = ("items", "lock")

    def __init__(self, capacity: int) -> None:
        self.items: deque[Metric] = deque(maxlen=capacity)
        self.lock = threading.RLock()


class MetricStore:
    """
    Thread-safe store of bounded series.

    Buffers are created on first append and never removed, so a lock obtained
    through ``lock_for`` stays valid for the life of the store. Series emptied
    by retention cleanup are hidden from ``keys()``.
    """

    DEFAULT_CAPACITY = 1000

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._registry_lock = threading.Lock()
        self._series: dict[SeriesKey, _SeriesBuffer] = {}

    def _buffer(self, key: SeriesKey) -> _SeriesBuffer | None:
        with self._registry_lock:
            return self._series.get(key)

    def _buffer_or_create(self, key: SeriesKey) -> _SeriesBuffer:
        with self._registry_lock:
            buffer = self._series.get(key)
            if buffer is None:
                buffer = _SeriesBuffer(self.capacity)
                self._series[key] = buffer
            return buffer

    def _existing_buffer(self, category: str, name: str) -> _SeriesBuffer:
        buffer = self._buffer(SeriesKey(category, name))
        if buffer is None:
            raise SeriesNotFoundException(category, name)
        return buffer

    def lock_for(self, key: SeriesKey) -> threading.RLock:
        """Per-series lock; hold it to make append plus follow-up work atomic."""
        return self._buffer_or_create(key).lock

    def append(self, metric: Metric) -> Metric | None:
        """
        Validate and append an observation.

        Args:
            metric: Observation to store

        Returns:
            The evicted observation when the series was full, None otherwise

        Raises:
            InvalidMetricException: If the observation is malformed
        """
        metric.validate()
        buffer = self._buffer_or_create(metric.key)

        with buffer.lock:
            evicted = buffer.items[0] if len(buffer.items) == buffer.items.maxlen else None
            buffer.items.append(metric)

        if evicted is not None:
            logger.debug(
                f"Series {metric.key} at capacity, evicted observation {evicted.id}",
                extra={"category": metric.category, "metric_name": metric.name},
            )
        return evicted

    def query(
        self,
        category: str,
        name: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Metric]:
        """
        Observations of a series in ascending timestamp order.

        Args:
            category: Series category
            name: Metric name
            start: Inclusive lower bound, optional
            end: Inclusive upper bound, optional

        Returns:
            A new list; mutating it never affects the store

        Raises:
            SeriesNotFoundException: If the series never received data
        """
        buffer = self._existing_buffer(category, name)
        start, end = _as_utc(start), _as_utc(end)

        with buffer.lock:
            snapshot = list(buffer.items)

        # Stable sort keeps arrival order for equal timestamps
        snapshot.sort(key=lambda m: m.timestamp)
        return [
            m
            for m in snapshot
            if (start is None or m.timestamp >= start) and (end is None or m.timestamp <= end)
        ]

    def has_series(self, category: str, name: str) -> bool:
        return self._buffer(SeriesKey(category, name)) is not None

    def size(self, category: str, name: str) -> int:
        buffer = self._existing_buffer(category, name)
        with buffer.lock:
            return len(buffer.items)

    def keys(self) -> list[SeriesKey]:
        """Keys of all non-empty series, sorted."""
        with self._registry_lock:
            buffers = list(self._series.items())
        return sorted(key for key, buffer in buffers if buffer.items)

    def keys_for(self, category: str) -> list[SeriesKey]:
        return [key for key in self.keys() if key.category == category]

    def categories(self) -> list[str]:
        """Categories holding at least one observation, sorted."""
        return sorted({key.category for key in self.keys()})

    def known_categories(self) -> list[str]:
        """Every category that ever received data, including emptied ones."""
        with self._registry_lock:
            return sorted({key.category for key in self._series})

    def has_category(self, category: str) -> bool:
        with self._registry_lock:
            return any(key.category == category for key in self._series)

    def latest_timestamp(self, category: str) -> datetime | None:
        """Newest observation time across a category, None when it holds no data."""
        latest = None
        for key in self.keys_for(category):
            buffer = self._buffer(key)
            if buffer is None:
                continue
            with buffer.lock:
                newest = max((m.timestamp for m in buffer.items), default=None)
            if newest is not None and (latest is None or newest > latest):
                latest = newest
        return latest

    def purge_older_than(self, cutoff: datetime) -> int:
        """
        Remove observations strictly older than ``cutoff``.

        Returns:
            Number of observations removed
        """
        cutoff = _as_utc(cutoff)
        with self._registry_lock:
            buffers = list(self._series.items())

        removed = 0
        for key, buffer in buffers:
            with buffer.lock:
                kept = [m for m in buffer.items if m.timestamp >= cutoff]
                dropped = len(buffer.items) - len(kept)
                if dropped:
                    buffer.items.clear()
                    buffer.items.extend(kept)
                    removed += dropped

        if removed:
            logger.info(f"Retention cleanup removed {removed} observations older than {cutoff}")
        return removed

    def __len__(self) -> int:
        with self._registry_lock:
            buffers = list(self._series.values())
        return sum(len(buffer.items) for buffer in buffers)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
