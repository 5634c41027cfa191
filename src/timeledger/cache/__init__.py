"""In-memory read cache for query results."""

from .data_cache import DataCache, CacheEntry, DEFAULT_TTL_SECONDS

__all__ = ["DataCache", "CacheEntry", "DEFAULT_TTL_SECONDS"]
