"""Enums for the timeledger application."""

from enum import Enum


class EntityKind(str, Enum):
    """Persisted entity collections.

    The value doubles as the cache key namespace (``"<kind>:<qualifier>"``).
    """

    DOMAINS = "domains"
    TAGS = "tags"
    TIMESLOTS = "timeslots"


class AttributionMode(str, Enum):
    """How a time slot's duration is distributed across its tags."""

    SPLIT = "split"
    PRIMARY = "primary"


class LifecycleState(str, Enum):
    """Lifecycle of a stored record. Transitions only move forward."""

    ACTIVE = "active"
    SOFT_DELETED = "soft_deleted"
    ERASED = "erased"


class SyncState(str, Enum):
    """States of one sync reconciliation cycle."""

    IDLE = "idle"
    PULLING = "pulling"
    RECONCILING = "reconciling"
    PUSHING = "pushing"
    FAILED = "failed"


class SyncStatus(str, Enum):
    """Outcome of a sync trigger."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
