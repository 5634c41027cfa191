"""Persistence, cache-first queries and tombstone collection."""

from .entity_store import EntityStore
from .garbage_collector import GarbageCollector, GCReport, run_startup_gc
from .queries import DomainQueries, QueryLayer, TagQueries, TimeSlotQueries

__all__ = [
    "EntityStore",
    "GarbageCollector",
    "GCReport",
    "run_startup_gc",
    "DomainQueries",
    "QueryLayer",
    "TagQueries",
    "TimeSlotQueries",
]
