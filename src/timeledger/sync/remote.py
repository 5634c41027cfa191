"""Remote store contract and the in-process reference remote."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from ..core.enums import EntityKind
from ..core.errors import ConflictError
from ..db.models import utcnow
from ..domain.entities import ENTITY_MODELS, EntitySnapshot, as_utc
from ..utils.logging_config import get_logger

logger = get_logger("sync")


@dataclass(frozen=True)
class RemoteRecord:
    """One record as exchanged with the remote; tombstones included."""

    entity_kind: EntityKind
    record: Dict[str, Any]
    version: int
    deleted_at: Optional[datetime] = None

    @property
    def id(self) -> UUID:
        return UUID(str(self.record["id"]))

    @classmethod
    def from_snapshot(cls, kind: EntityKind, snapshot: EntitySnapshot) -> "RemoteRecord":
        return cls(
            entity_kind=EntityKind(kind),
            record=snapshot.content(),
            version=snapshot.version,
            deleted_at=snapshot.deleted_at,
        )

    def to_snapshot(self) -> EntitySnapshot:
        """Parse the payload into the snapshot model of its kind."""
        return ENTITY_MODELS[self.entity_kind].model_validate(self.record)

    def to_json(self) -> Dict[str, Any]:
        return {
            "entity_kind": self.entity_kind.value,
            "record": self.record,
            "version": self.version,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "RemoteRecord":
        deleted_at = data.get("deleted_at")
        return cls(
            entity_kind=EntityKind(data["entity_kind"]),
            record=dict(data["record"]),
            version=int(data["version"]),
            deleted_at=as_utc(datetime.fromisoformat(deleted_at)) if deleted_at else None,
        )


@dataclass(frozen=True)
class PushAck:
    """The remote accepted ``accepted_version`` of record ``id``."""

    id: UUID
    accepted_version: int


class RemoteStore(ABC):
    """Remote backend holding one namespace of records per user."""

    @abstractmethod
    async def pull(self, user_id: str, since: Optional[datetime]) -> List[RemoteRecord]:
        """Every record of every kind modified after ``since`` (all when None)."""
        pass

    @abstractmethod
    async def push(self, user_id: str, records: Sequence[RemoteRecord]) -> List[PushAck]:
        """
        Store ``records`` and acknowledge them.

        Raises:
            ConflictError: If the remote holds a newer or divergent version
            TransportError: If the remote could not be reached
        """
        pass


class InMemoryRemoteStore(RemoteStore):
    """
    Remote kept in process memory.

    A pushed record is accepted iff its version is newer than the stored
    one; redelivering an identical record is acknowledged. A push with any
    conflicting record stores nothing.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        # user -> (kind, id) -> (record, server_modified_at)
        self._namespaces: Dict[str, Dict[Tuple[EntityKind, UUID], Tuple[RemoteRecord, datetime]]] = {}
        self.pull_calls = 0
        self.push_calls = 0

    def _namespace(self, user_id: str):
        return self._namespaces.setdefault(user_id, {})

    def put(self, user_id: str, record: RemoteRecord) -> None:
        """Write a record directly, as another device's push would."""
        self._namespace(user_id)[(record.entity_kind, record.id)] = (record, self._clock())

    def get(self, user_id: str, kind: EntityKind, record_id: UUID) -> Optional[RemoteRecord]:
        entry = self._namespace(user_id).get((EntityKind(kind), record_id))
        return entry[0] if entry else None

    def records(self, user_id: str) -> List[RemoteRecord]:
        return [record for record, _ in self._namespace(user_id).values()]

    async def pull(self, user_id: str, since: Optional[datetime]) -> List[RemoteRecord]:
        self.pull_calls += 1
        pulled = [
            record
            for record, modified_at in self._namespace(user_id).values()
            if since is None or modified_at > since
        ]
        logger.debug(f"Remote pull for {user_id}: {len(pulled)} record(s)")
        return pulled

    async def push(self, user_id: str, records: Sequence[RemoteRecord]) -> List[PushAck]:
        self.push_calls += 1
        namespace = self._namespace(user_id)

        conflicts = []
        for record in records:
            entry = namespace.get((record.entity_kind, record.id))
            if entry is None:
                continue
            stored = entry[0]
            if record.version > stored.version:
                continue
            if record.version == stored.version and record.record == stored.record:
                continue
            conflicts.append(record.id)

        if conflicts:
            raise ConflictError(
                f"{len(conflicts)} record(s) are stale on the remote", record_ids=conflicts
            )

        now = self._clock()
        acks = []
        for record in records:
            key = (record.entity_kind, record.id)
            entry = namespace.get(key)
            if entry is None or record.version > entry[0].version:
                namespace[key] = (record, now)
            acks.append(PushAck(id=record.id, accepted_version=record.version))
        return acks
