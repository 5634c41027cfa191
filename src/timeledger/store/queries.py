"""
Cache-first reads and write-through mutations for every entity kind.

Every write persists through the entity store and then evicts all cached
views of that kind with ``invalidate_pattern("<kind>:")``. Reads never patch
cached values in place; the next read after a write re-queries the store.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Type
from uuid import UUID

import pydantic

from ..cache.data_cache import DataCache
from ..core.enums import EntityKind
from ..core.errors import NotFoundError, ValidationError
from ..db.models import utcnow
from ..domain.entities import (
    DomainFields,
    DomainPatch,
    EntitySnapshot,
    FieldsModel,
    TagFields,
    TagPatch,
    TimeSlotFields,
    TimeSlotPatch,
    as_utc,
)
from ..utils.logging_config import get_logger
from .entity_store import ENTITY_LABELS, EntityStore

logger = get_logger("store")


def _validation_error(kind: EntityKind, exc: pydantic.ValidationError) -> ValidationError:
    errors = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    summary = "; ".join(error["msg"] for error in errors) or "invalid fields"
    return ValidationError(f"Invalid {ENTITY_LABELS[kind]}: {summary}", errors)


class EntityQueries:
    """Query and mutation operations for one entity kind."""

    kind: EntityKind
    fields_model: Type[FieldsModel]
    patch_model: Type[FieldsModel]

    def __init__(
        self,
        store: EntityStore,
        cache: DataCache,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cache = cache
        self._clock = clock

    @property
    def prefix(self) -> str:
        return f"{self.kind.value}:"

    def _key(self, qualifier: str) -> str:
        return f"{self.kind.value}:{qualifier}"

    def _cached(self, key: str, load: Callable[[], List[EntitySnapshot]]) -> List[EntitySnapshot]:
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        records = load()
        # Tuples so a caller cannot mutate the cached view
        self.cache.set(key, tuple(records))
        return records

    def _invalidate(self) -> None:
        self.cache.invalidate_pattern(self.prefix)

    def _parse(self, model: Type[FieldsModel], data: Any) -> FieldsModel:
        if isinstance(data, model):
            return data
        try:
            if isinstance(data, FieldsModel):
                data = data.model_dump(exclude_unset=True)
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            raise _validation_error(self.kind, e) from e

    # === Reads ===

    def get_all_active(self) -> List[EntitySnapshot]:
        """Every record that is neither deleted nor archived."""
        return self._cached(self._key("all:active"), lambda: self.store.list_active(self.kind))

    def get(self, record_id: UUID) -> EntitySnapshot:
        """One non-deleted record.

        Raises:
            NotFoundError: If the record does not exist or is soft-deleted
        """
        record = self.store.get(self.kind, record_id)
        if record is None:
            raise NotFoundError(ENTITY_LABELS[self.kind], record_id)
        return record

    # === Writes ===

    def create(self, fields: Any) -> EntitySnapshot:
        """
        Validate and persist a new record.

        Args:
            fields: Field mapping or the kind's fields model

        Returns:
            The stored record with ``version == 1``

        Raises:
            ValidationError: If the fields are malformed; nothing is persisted
        """
        parsed = self._parse(self.fields_model, fields)
        record = self.store.insert(self.kind, parsed.model_dump(), self._clock())
        self._invalidate()
        logger.info(f"Created {ENTITY_LABELS[self.kind]} {record.id}")
        return record

    def _check_merged(self, current: EntitySnapshot, changes: Dict[str, Any]) -> None:
        """Hook for kinds whose patch must be validated against the whole record."""

    def update(self, record_id: UUID, patch: Any) -> EntitySnapshot:
        """
        Apply a partial update to an active record.

        Raises:
            NotFoundError: If no active record has ``record_id``
            ValidationError: If the patched record would be invalid
        """
        parsed = self._parse(self.patch_model, patch)
        changes = parsed.model_dump(exclude_unset=True)
        current = self.get(record_id)

        # Explicit nulls for required fields are rejected, not stored
        required = set(self.fields_model.model_fields) - {"note"}
        nulls = [name for name, value in changes.items() if value is None and name in required]
        if nulls:
            raise ValidationError(
                f"Invalid {ENTITY_LABELS[self.kind]}: {', '.join(nulls)} cannot be null",
                [{"loc": [name], "msg": "cannot be null", "type": "null"} for name in nulls],
            )

        self._check_merged(current, changes)

        record = self.store.mutate(self.kind, record_id, changes, self._clock())
        self._invalidate()
        logger.info(f"Updated {ENTITY_LABELS[self.kind]} {record_id} -> v{record.version}")
        return record

    def soft_delete(self, record_id: UUID) -> EntitySnapshot:
        """
        Mark a record deleted; it stays stored as a tombstone until GC.

        Raises:
            NotFoundError: If the record is missing or already soft-deleted
        """
        now = self._clock()
        record = self.store.mutate(self.kind, record_id, {"deleted_at": now}, now)
        self._invalidate()
        logger.info(f"Soft-deleted {ENTITY_LABELS[self.kind]} {record_id}")
        return record


class ArchivableQueries(EntityQueries):
    """Archive state for domains and tags."""

    def get_archived(self) -> List[EntitySnapshot]:
        """Archived records that are not deleted."""
        return self._cached(self._key("all:archived"), lambda: self.store.list_archived(self.kind))

    def get_all_live(self) -> List[EntitySnapshot]:
        """Every non-deleted record, archived ones included."""
        return self._cached(self._key("all:live"), lambda: self.store.list_live(self.kind))

    def archive(self, record_id: UUID) -> EntitySnapshot:
        """Set ``archived_at``; the record leaves active views but is not deleted."""
        now = self._clock()
        record = self.store.mutate(self.kind, record_id, {"archived_at": now}, now)
        self._invalidate()
        logger.info(f"Archived {ENTITY_LABELS[self.kind]} {record_id}")
        return record

    def unarchive(self, record_id: UUID) -> EntitySnapshot:
        """Clear ``archived_at``."""
        record = self.store.mutate(self.kind, record_id, {"archived_at": None}, self._clock())
        self._invalidate()
        logger.info(f"Unarchived {ENTITY_LABELS[self.kind]} {record_id}")
        return record


class DomainQueries(ArchivableQueries):
    kind = EntityKind.DOMAINS
    fields_model = DomainFields
    patch_model = DomainPatch


class TagQueries(ArchivableQueries):
    kind = EntityKind.TAGS
    fields_model = TagFields
    patch_model = TagPatch

    def get_by_domain(self, domain_id: UUID) -> List[EntitySnapshot]:
        """Active tags belonging to ``domain_id``."""
        return self._cached(
            self._key(f"by-domain:{domain_id}"),
            lambda: self.store.list_tags_by_domain(domain_id),
        )


class TimeSlotQueries(EntityQueries):
    kind = EntityKind.TIMESLOTS
    fields_model = TimeSlotFields
    patch_model = TimeSlotPatch

    def _check_merged(self, current: EntitySnapshot, changes: Dict[str, Any]) -> None:
        start = changes.get("start", current.start)
        end = changes.get("end", current.end)
        if start >= end:
            raise ValidationError(
                "Invalid TimeSlot: start must be before end",
                [{"loc": ["start"], "msg": "start must be before end", "type": "value_error"}],
            )

    def get_range(self, start: datetime, end: datetime) -> List[EntitySnapshot]:
        """
        Active slots whose start lies in ``[start, end]``, ordered by start.

        Raises:
            ValidationError: If ``start`` is after ``end``
        """
        start = as_utc(start)
        end = as_utc(end)
        if start > end:
            raise ValidationError("Invalid range: start must not be after end")

        return self._cached(
            self._key(f"range:{start.isoformat()}:{end.isoformat()}"),
            lambda: self.store.list_slots_between(start, end),
        )

    def get_for_day(self, day: date) -> List[EntitySnapshot]:
        """Active slots starting on ``day`` (UTC)."""
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        end = start + timedelta(days=1) - timedelta(microseconds=1)
        return self.get_range(start, end)


class QueryLayer:
    """Query objects for every entity kind, sharing one cache and store."""

    def __init__(
        self,
        store: EntityStore,
        cache: DataCache,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.cache = cache
        self.domains = DomainQueries(store, cache, clock)
        self.tags = TagQueries(store, cache, clock)
        self.timeslots = TimeSlotQueries(store, cache, clock)

    def for_kind(self, kind: EntityKind) -> EntityQueries:
        return {
            EntityKind.DOMAINS: self.domains,
            EntityKind.TAGS: self.tags,
            EntityKind.TIMESLOTS: self.timeslots,
        }[EntityKind(kind)]

    def stats_inputs(self, start: datetime, end: datetime):
        """Fresh slots for a range plus the full live tag and domain catalogs."""
        return (
            self.timeslots.get_range(start, end),
            self.tags.get_all_live(),
            self.domains.get_all_live(),
        )
