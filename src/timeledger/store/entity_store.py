"""Persisted collections of domains, tags and time slots.

This module is the system of record. It provides:
- Versioned create/mutate with soft deletion (records are never removed here
  except by the tombstone sweep)
- Active/archived/range reads returning detached snapshots
- Sync bookkeeping: pending-push scans, remote upserts, acknowledgements and
  per-user checkpoints
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, not_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.enums import EntityKind
from ..core.errors import NotFoundError, StoreError
from ..db.models import Domain, SyncCheckpoint, Tag, TimeSlot
from ..domain.entities import ENTITY_MODELS, EntitySnapshot
from ..utils.logging_config import get_logger

logger = get_logger("store")

ORM_MODELS: Dict[EntityKind, Type] = {
    EntityKind.DOMAINS: Domain,
    EntityKind.TAGS: Tag,
    EntityKind.TIMESLOTS: TimeSlot,
}

ENTITY_LABELS = {
    EntityKind.DOMAINS: "Domain",
    EntityKind.TAGS: "Tag",
    EntityKind.TIMESLOTS: "TimeSlot",
}

# Local bookkeeping that never leaves this store
LOCAL_ONLY_COLUMNS = frozenset({"synced_version"})


def _to_columns(values: Dict[str, Any]) -> Dict[str, Any]:
    """Convert snapshot values to column values (tag ids are stored as strings)."""
    columns = {key: value for key, value in values.items() if key not in LOCAL_ONLY_COLUMNS}
    if columns.get("tag_ids") is not None:
        columns["tag_ids"] = [str(tag_id) for tag_id in columns["tag_ids"]]
    return columns


class EntityStore:
    """SQLAlchemy-backed store for every entity kind."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # === Reads ===

    def _snapshot(self, kind: EntityKind, row) -> EntitySnapshot:
        return ENTITY_MODELS[kind].model_validate(row)

    def _active_row(self, session: Session, kind: EntityKind, record_id: UUID):
        model = ORM_MODELS[kind]
        row = session.get(model, record_id)
        if row is None or row.deleted_at is not None:
            raise NotFoundError(ENTITY_LABELS[kind], record_id)
        return row

    def get(
        self, kind: EntityKind, record_id: UUID, include_deleted: bool = False
    ) -> Optional[EntitySnapshot]:
        """Get one record by id; soft-deleted records only when asked for."""
        try:
            with self._session_factory() as session:
                row = session.get(ORM_MODELS[kind], record_id)
                if row is None or (row.deleted_at is not None and not include_deleted):
                    return None
                return self._snapshot(kind, row)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to get {kind.value} {record_id}: {e}") from e

    def _ordering(self, kind: EntityKind):
        model = ORM_MODELS[kind]
        if kind is EntityKind.DOMAINS:
            return (model.order, model.created_at)
        if kind is EntityKind.TIMESLOTS:
            return (model.start, model.created_at)
        return (model.created_at,)

    def _list(self, kind: EntityKind, *conditions) -> List[EntitySnapshot]:
        model = ORM_MODELS[kind]
        try:
            with self._session_factory() as session:
                query = (
                    select(model)
                    .where(model.deleted_at.is_(None), *conditions)
                    .order_by(*self._ordering(kind))
                )
                rows = session.execute(query).scalars().all()
                return [self._snapshot(kind, row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list {kind.value}: {e}") from e

    def list_active(self, kind: EntityKind) -> List[EntitySnapshot]:
        """Records that are neither soft-deleted nor archived."""
        model = ORM_MODELS[kind]
        if hasattr(model, "archived_at"):
            return self._list(kind, model.archived_at.is_(None))
        return self._list(kind)

    def list_live(self, kind: EntityKind) -> List[EntitySnapshot]:
        """Every record that is not soft-deleted, archived ones included."""
        return self._list(kind)

    def list_archived(self, kind: EntityKind) -> List[EntitySnapshot]:
        """Archived records that are not soft-deleted."""
        model = ORM_MODELS[kind]
        if not hasattr(model, "archived_at"):
            return []
        return self._list(kind, model.archived_at.is_not(None))

    def list_tags_by_domain(self, domain_id: UUID) -> List[EntitySnapshot]:
        """Active tags of one domain."""
        return self._list(EntityKind.TAGS, Tag.domain_id == domain_id, Tag.archived_at.is_(None))

    def list_slots_between(self, start: datetime, end: datetime) -> List[EntitySnapshot]:
        """Active time slots whose start lies in ``[start, end]``."""
        return self._list(EntityKind.TIMESLOTS, TimeSlot.start >= start, TimeSlot.start <= end)

    # === Writes ===

    def insert(self, kind: EntityKind, values: Dict[str, Any], now: datetime) -> EntitySnapshot:
        """
        Persist a new record with ``version = 1``.

        Args:
            kind: Entity collection
            values: Validated entity fields
            now: Creation timestamp

        Returns:
            Snapshot of the stored record
        """
        model = ORM_MODELS[kind]
        try:
            with self._session_factory.begin() as session:
                row = model(
                    id=uuid4(),
                    version=1,
                    synced_version=0,
                    created_at=now,
                    updated_at=now,
                    deleted_at=None,
                    **_to_columns(values),
                )
                session.add(row)
                session.flush()
                snapshot = self._snapshot(kind, row)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create {kind.value}: {e}") from e

        logger.debug(f"Created {ENTITY_LABELS[kind]} {snapshot.id}")
        return snapshot

    def mutate(
        self,
        kind: EntityKind,
        record_id: UUID,
        changes: Dict[str, Any],
        now: datetime,
    ) -> EntitySnapshot:
        """
        Apply ``changes`` to an active record and bump its version.

        Raises:
            NotFoundError: If the record does not exist or is soft-deleted
        """
        try:
            with self._session_factory.begin() as session:
                row = self._active_row(session, kind, record_id)
                for key, value in _to_columns(changes).items():
                    setattr(row, key, value)
                row.version = row.version + 1
                row.updated_at = now
                session.flush()
                snapshot = self._snapshot(kind, row)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update {kind.value} {record_id}: {e}") from e

        logger.debug(f"Mutated {ENTITY_LABELS[kind]} {record_id} -> v{snapshot.version}")
        return snapshot

    # === Sync bookkeeping ===

    def get_any(self, kind: EntityKind, record_id: UUID) -> Optional[Tuple[EntitySnapshot, int]]:
        """Snapshot (tombstones included) and its synced version, or None."""
        try:
            with self._session_factory() as session:
                row = session.get(ORM_MODELS[kind], record_id)
                if row is None:
                    return None
                return self._snapshot(kind, row), row.synced_version
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to get {kind.value} {record_id}: {e}") from e

    def upsert_remote(self, kind: EntityKind, snapshot: EntitySnapshot) -> None:
        """Store a remote copy verbatim, tombstone state included."""
        model = ORM_MODELS[kind]
        values = _to_columns(snapshot.model_dump())
        try:
            with self._session_factory.begin() as session:
                row = session.get(model, snapshot.id)
                if row is None:
                    row = model(**values)
                    session.add(row)
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
                row.synced_version = snapshot.version
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to apply remote {kind.value} {snapshot.id}: {e}") from e

    def restamp(self, kind: EntityKind, record_id: UUID, now: datetime) -> EntitySnapshot:
        """Bump version and ``updated_at`` of any record, tombstones included."""
        try:
            with self._session_factory.begin() as session:
                row = session.get(ORM_MODELS[kind], record_id)
                if row is None:
                    raise NotFoundError(ENTITY_LABELS[kind], record_id)
                row.version = row.version + 1
                row.updated_at = now
                session.flush()
                return self._snapshot(kind, row)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to restamp {kind.value} {record_id}: {e}") from e

    def pending_push(self, since: Optional[datetime]) -> List[Tuple[EntityKind, EntitySnapshot]]:
        """Records changed after ``since`` whose version the remote has not seen."""
        pending: List[Tuple[EntityKind, EntitySnapshot]] = []
        try:
            with self._session_factory() as session:
                for kind, model in ORM_MODELS.items():
                    query = select(model).where(model.version > model.synced_version)
                    if since is not None:
                        query = query.where(model.updated_at > since)
                    rows = session.execute(query.order_by(model.updated_at)).scalars().all()
                    pending.extend((kind, self._snapshot(kind, row)) for row in rows)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to scan pending changes: {e}") from e
        return pending

    def mark_synced(self, kind: EntityKind, record_id: UUID, accepted_version: int) -> bool:
        """Record a remote acknowledgement unless the record changed meanwhile."""
        try:
            with self._session_factory.begin() as session:
                row = session.get(ORM_MODELS[kind], record_id)
                if row is None or row.version != accepted_version:
                    return False
                row.synced_version = accepted_version
                return True
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to acknowledge {kind.value} {record_id}: {e}") from e

    def get_checkpoint(self, user_id: str) -> Optional[datetime]:
        """Last successful sync time for ``user_id``."""
        try:
            with self._session_factory() as session:
                row = session.get(SyncCheckpoint, user_id)
                return row.checkpoint if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read checkpoint: {e}") from e

    def set_checkpoint(self, user_id: str, checkpoint: datetime, now: datetime) -> None:
        """Advance the checkpoint of ``user_id``."""
        try:
            with self._session_factory.begin() as session:
                row = session.get(SyncCheckpoint, user_id)
                if row is None:
                    session.add(SyncCheckpoint(user_id=user_id, checkpoint=checkpoint, updated_at=now))
                else:
                    row.checkpoint = checkpoint
                    row.updated_at = now
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to write checkpoint: {e}") from e

    # === Tombstones ===

    def _unpushed(self, model):
        """Changes to a record the remote already holds that it has not acknowledged."""
        return and_(model.synced_version > 0, model.synced_version < model.version)

    def _tombstone_condition(self, model, cutoff: datetime, require_pushed: bool):
        condition = and_(model.deleted_at.is_not(None), model.deleted_at <= cutoff)
        if require_pushed:
            # A record the remote never saw can go; one it knows must carry its deletion first
            condition = and_(condition, not_(self._unpushed(model)))
        return condition

    def erase_tombstones(self, cutoff: datetime, require_pushed: bool) -> Dict[EntityKind, int]:
        """
        Permanently delete tombstones with ``deleted_at <= cutoff``.

        Every kind is erased in one transaction: readers see all of the
        tombstones or none of them.
        """
        erased: Dict[EntityKind, int] = {}
        try:
            with self._session_factory.begin() as session:
                for kind, model in ORM_MODELS.items():
                    result = session.execute(
                        delete(model)
                        .where(self._tombstone_condition(model, cutoff, require_pushed))
                        .execution_options(synchronize_session=False)
                    )
                    erased[kind] = result.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to erase tombstones: {e}") from e
        return erased

    def count_unpushed_tombstones(self, cutoff: datetime) -> int:
        """Expired tombstones still waiting for a remote acknowledgement."""
        total = 0
        try:
            with self._session_factory() as session:
                for model in ORM_MODELS.values():
                    rows = session.execute(
                        select(model.id).where(
                            model.deleted_at.is_not(None),
                            model.deleted_at <= cutoff,
                            self._unpushed(model),
                        )
                    ).all()
                    total += len(rows)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to count tombstones: {e}") from e
        return total
