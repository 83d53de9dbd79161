"""Query result caching."""

from telehealth_scheduling.cache.query_cache import CacheEntry, QueryCache

__all__ = ["CacheEntry", "QueryCache"]
