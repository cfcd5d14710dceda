"""
TTL memoization for aggregate queries.

Concurrent callers asking for the same missing key share one computation:
the first caller computes outside the lock while later callers block on an
event and receive the same result or the same failure. Failed computations
are never stored. Expiry is checked at read time against a monotonic clock.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from src.domain.exceptions import ComputeFailureException

logger = logging.getLogger(__name__)

T = TypeVar("T")


def series_token(category: str, name: str) -> str:
    """Key segment identifying one series, unambiguous for any category/name text."""
    return repr((category, name))


def health_key(category: str) -> str:
    return f"health:{category!r}"


@dataclass
class CacheEntry:
    """A computed value and when it was computed."""

    key: str
    value: Any
    computed_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.computed_at > self.ttl


class _InFlight:
    """State shared by all callers waiting on one computation."""

    __slots__ = ("done", "value", "error", "invalidated")

    def __init__(self) -> None:
        self.done = threading.Event()
        self.value: Any = None
        self.error: BaseException | None = None
        self.invalidated = False


@dataclass(frozen=True)
class CacheStats:
    """Counters describing cache effectiveness."""

    hits: int
    misses: int
    waits: int
    evictions: int
    invalidations: int
    size: int

    @property
    def hit_rate(self) -> float:
        requests = self.hits + self.misses + self.waits
        return (self.hits + self.waits) / requests if requests else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "waits": self.waits,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
            "size": self.size,
            "hit_rate": self.hit_rate,
        }


class AggregationCache:
    """
    Single-flight TTL cache.

    ``max_entries`` bounds the number of stored entries; when exceeded the
    entries computed longest ago are evicted first. Zero disables the bound.
    """

    def __init__(
        self,
        default_ttl: float = 60.0,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
        on_request: Callable[[str], None] | None = None,
    ) -> None:
        if default_ttl < 0:
            raise ValueError("default_ttl must not be negative")
        if max_entries < 0:
            raise ValueError("max_entries must not be negative")
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._on_request = on_request
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, _InFlight] = {}
        self._hits = 0
        self._misses = 0
        self._waits = 0
        self._evictions = 0
        self._invalidations = 0

    def get_or_compute(
        self, key: str, compute: Callable[[], T], ttl: float | None = None
    ) -> T:
        """
        Return the cached value for ``key`` or compute it once.

        Args:
            key: Cache key
            compute: Zero-argument function producing the value
            ttl: Seconds the value stays fresh, defaults to ``default_ttl``

        Returns:
            The cached or freshly computed value

        Raises:
            ComputeFailureException: If the computation raised, for the
                computing caller and every caller waiting on it
        """
        ttl = self.default_ttl if ttl is None else ttl

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if not entry.is_expired(self._clock()):
                    self._hits += 1
                    result = "hit"
                else:
                    del self._entries[key]
                    entry = None
            if entry is None:
                flight = self._in_flight.get(key)
                if flight is not None:
                    self._waits += 1
                    result = "wait"
                else:
                    flight = _InFlight()
                    self._in_flight[key] = flight
                    self._misses += 1
                    result = "miss"

        self._record(result)

        if result == "hit":
            return entry.value  # type: ignore[union-attr]
        if result == "wait":
            return self._wait_for(key, flight)
        return self._compute(key, flight, compute, ttl)

    def _compute(self, key: str, flight: _InFlight, compute: Callable[[], T], ttl: float) -> T:
        try:
            value = compute()
        except BaseException as e:
            flight.error = e
            with self._lock:
                self._in_flight.pop(key, None)
            flight.done.set()
            # Interrupts reach the computing caller unchanged
            if not isinstance(e, Exception):
                raise
            logger.warning(f"Cache computation for {key} failed: {e}", exc_info=True)
            raise ComputeFailureException(key, e) from e

        flight.value = value
        with self._lock:
            self._in_flight.pop(key, None)
            if not flight.invalidated:
                self._entries[key] = CacheEntry(
                    key=key, value=value, computed_at=self._clock(), ttl=ttl
                )
                self._enforce_bound()
        flight.done.set()
        return value

    def _wait_for(self, key: str, flight: _InFlight) -> Any:
        flight.done.wait()
        if flight.error is not None:
            raise ComputeFailureException(key, flight.error) from flight.error
        return flight.value

    def _enforce_bound(self) -> None:
        """Evict oldest entries past ``max_entries``. Caller holds the lock."""
        if not self.max_entries or len(self._entries) <= self.max_entries:
            return
        overflow = len(self._entries) - self.max_entries
        oldest = sorted(self._entries.values(), key=lambda e: e.computed_at)[:overflow]
        for entry in oldest:
            del self._entries[entry.key]
        self._evictions += overflow

    def _record(self, result: str) -> None:
        if self._on_request is not None:
            self._on_request(result)

    def invalidate(self, pattern: str) -> int:
        """
        Remove every entry whose key contains ``pattern``.

        Computations in flight for a matching key still return to their
        callers but their result is not stored.

        Returns:
            Number of stored entries removed
        """
        with self._lock:
            matching = [key for key in self._entries if pattern in key]
            for key in matching:
                del self._entries[key]
            for key, flight in self._in_flight.items():
                if pattern in key:
                    flight.invalidated = True
            self._invalidations += len(matching)

        if matching:
            logger.debug(
                f"Invalidated {len(matching)} cache entries matching '{pattern}'",
                extra={"operation_type": "cache"},
            )
        return len(matching)

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._evictions += len(expired)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            for flight in self._in_flight.values():
                flight.invalidated = True

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                waits=self._waits,
                evictions=self._evictions,
                invalidations=self._invalidations,
                size=len(self._entries),
            )

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
