"""Entity snapshots and input contracts for domains, tags and time slots.

Snapshots are immutable pydantic models detached from the database session,
so they can be cached and handed to callers without aliasing stored state.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Type
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.enums import EntityKind, LifecycleState

COLOR_PATTERN = r"^#(?:[0-9a-fA-F]{3}){1,2}$"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EntitySnapshot(BaseModel):
    """Fields shared by every versioned, soft-deletable entity."""

    model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")

    id: UUID
    version: int = Field(ge=1)
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", "deleted_at")
    @classmethod
    def normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @property
    def lifecycle_state(self) -> LifecycleState:
        if self.deleted_at is None:
            return LifecycleState.ACTIVE
        return LifecycleState.SOFT_DELETED

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def content(self) -> Dict:
        """Payload used to compare two copies of the same record."""
        return self.model_dump(mode="json")


class DomainEntity(EntitySnapshot):
    """A top-level life category."""

    name: str
    color: str
    order: int = 0
    archived_at: Optional[datetime] = None

    @field_validator("archived_at")
    @classmethod
    def normalize_archived_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class TagEntity(EntitySnapshot):
    """A tag belonging to exactly one domain."""

    domain_id: UUID
    name: str
    color: str
    archived_at: Optional[datetime] = None

    @field_validator("archived_at")
    @classmethod
    def normalize_archived_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class TimeSlotEntity(EntitySnapshot):
    """A tracked interval; ``tag_ids`` order matters for primary attribution."""

    start: datetime
    end: datetime
    tag_ids: List[UUID] = Field(default_factory=list)
    note: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60


ENTITY_MODELS: Dict[EntityKind, Type[EntitySnapshot]] = {
    EntityKind.DOMAINS: DomainEntity,
    EntityKind.TAGS: TagEntity,
    EntityKind.TIMESLOTS: TimeSlotEntity,
}


# Input contracts

class FieldsModel(BaseModel):
    """Base for create/patch payloads."""

    model_config = ConfigDict(extra="forbid")


class DomainFields(FieldsModel):
    """Fields required to create a domain."""

    name: str = Field(min_length=1, max_length=100)
    color: str = Field(pattern=COLOR_PATTERN)
    order: int = Field(default=0, ge=0)


class DomainPatch(FieldsModel):
    """Partial domain update."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    order: Optional[int] = Field(default=None, ge=0)


class TagFields(FieldsModel):
    """Fields required to create a tag."""

    domain_id: UUID
    name: str = Field(min_length=1, max_length=100)
    color: str = Field(pattern=COLOR_PATTERN)


class TagPatch(FieldsModel):
    """Partial tag update."""

    domain_id: Optional[UUID] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)


def _ordered_unique(tag_ids: Optional[List[UUID]]) -> Optional[List[UUID]]:
    if tag_ids is None:
        return None
    seen = set()
    unique = []
    for tag_id in tag_ids:
        if tag_id not in seen:
            seen.add(tag_id)
            unique.append(tag_id)
    return unique


class TimeSlotFields(FieldsModel):
    """Fields required to create a time slot."""

    start: datetime
    end: datetime
    tag_ids: List[UUID] = Field(default_factory=list)
    note: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("tag_ids")
    @classmethod
    def dedupe_tag_ids(cls, value: Optional[List[UUID]]) -> Optional[List[UUID]]:
        return _ordered_unique(value)

    @model_validator(mode="after")
    def check_interval(self) -> "TimeSlotFields":
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class TimeSlotPatch(FieldsModel):
    """Partial time slot update; the merged interval is checked by the query layer."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    tag_ids: Optional[List[UUID]] = None
    note: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("tag_ids")
    @classmethod
    def dedupe_tag_ids(cls, value: Optional[List[UUID]]) -> Optional[List[UUID]]:
        return _ordered_unique(value)
