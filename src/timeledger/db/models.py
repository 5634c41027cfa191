"""SQLAlchemy models for the timeledger entity store."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    Text,
    JSON,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import TypeDecorator, CHAR

from ..core.enums import LifecycleState
from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GUID(TypeDecorator):
    """Platform-independent GUID type using String for SQLite."""

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID())
        else:
            return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, UUID):
            return UUID(str(value))
        return value


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on SQLite which drops tzinfo."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class LifecycleColumns:
    """Version and soft-delete metadata shared by every synced entity."""

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    deleted_at = Column(UTCDateTime(), nullable=True)
    # Last version the remote acknowledged or delivered; 0 = never synced
    synced_version = Column(Integer, nullable=False, default=0)

    @property
    def lifecycle_state(self) -> LifecycleState:
        if self.deleted_at is None:
            return LifecycleState.ACTIVE
        return LifecycleState.SOFT_DELETED

    @property
    def is_pending_push(self) -> bool:
        return self.version > (self.synced_version or 0)


class Domain(LifecycleColumns, Base):
    """A top-level life category (Work, Health, Study...)."""

    __tablename__ = "domains"

    id = Column(GUID(), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    color = Column(String(16), nullable=False)
    order = Column("order", Integer, nullable=False, default=0)
    archived_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (Index("ix_domains_updated_at", "updated_at"),)

    def __repr__(self) -> str:
        return f"<Domain(id={self.id}, name='{self.name}', v{self.version})>"


class Tag(LifecycleColumns, Base):
    """A sub-category of one domain. ``domain_id`` is not a foreign key."""

    __tablename__ = "tags"

    id = Column(GUID(), primary_key=True, default=uuid4)
    domain_id = Column(GUID(), nullable=False)
    name = Column(String(100), nullable=False)
    color = Column(String(16), nullable=False)
    archived_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        Index("ix_tags_domain_id", "domain_id"),
        Index("ix_tags_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name='{self.name}', v{self.version})>"


class TimeSlot(LifecycleColumns, Base):
    """A tracked interval of time with zero or more ordered tags."""

    __tablename__ = "timeslots"

    id = Column(GUID(), primary_key=True, default=uuid4)
    start = Column("start", UTCDateTime(), nullable=False)
    end = Column("end", UTCDateTime(), nullable=False)
    tag_ids = Column(JSON, nullable=False, default=list)  # ordered list of tag id strings
    note = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_timeslots_start", "start"),
        Index("ix_timeslots_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<TimeSlot(id={self.id}, start={self.start}, v{self.version})>"


class SyncCheckpoint(Base):
    """Last successfully completed sync cycle per user namespace."""

    __tablename__ = "sync_checkpoints"

    user_id = Column(String(255), primary_key=True)
    checkpoint = Column(UTCDateTime(), nullable=False)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<SyncCheckpoint(user_id='{self.user_id}', checkpoint={self.checkpoint})>"
