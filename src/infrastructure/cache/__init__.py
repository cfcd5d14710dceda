"""In-memory caching for aggregate queries."""

from .aggregation_cache import AggregationCache, CacheEntry, CacheStats

__all__ = ["AggregationCache", "CacheEntry", "CacheStats"]
