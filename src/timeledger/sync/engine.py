"""
Bidirectional sync between the local entity store and a remote store.

One cycle: pull everything the remote changed since the checkpoint,
reconcile it record by record against the local store, push local changes
the remote has not seen, then advance the checkpoint and invalidate the
whole cache.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
from uuid import UUID

import pydantic

from ..auth.provider import AuthProvider
from ..cache.data_cache import DataCache
from ..core.enums import EntityKind, SyncState, SyncStatus
from ..core.errors import ConflictError, StoreError, TransportError
from ..db.models import utcnow
from ..store.entity_store import EntityStore
from ..utils.logging_config import get_logger, log_exception
from .remote import RemoteRecord, RemoteStore

logger = get_logger("sync")

RecordKey = Tuple[EntityKind, UUID]


@dataclass
class SyncReport:
    """Outcome of one sync trigger."""

    status: SyncStatus
    user_id: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    pulled: int = 0
    applied: int = 0
    pushed: int = 0
    deferred: int = 0
    conflict_retries: int = 0
    checkpoint: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "user_id": self.user_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "pulled": self.pulled,
            "applied": self.applied,
            "pushed": self.pushed,
            "deferred": self.deferred,
            "conflict_retries": self.conflict_retries,
            "checkpoint": self.checkpoint.isoformat() if self.checkpoint else None,
            "error": self.error,
        }


@dataclass
class _Cycle:
    user_id: str
    checkpoint: Optional[datetime]
    report: SyncReport
    remote_won: Set[RecordKey] = field(default_factory=set)
    restamped: int = 0

    @property
    def changed_store(self) -> bool:
        return bool(self.report.applied or self.restamped)


class SyncEngine:
    """Runs pull / reconcile / push cycles; at most one at a time."""

    def __init__(
        self,
        store: EntityStore,
        cache: DataCache,
        remote: RemoteStore,
        auth: AuthProvider,
        max_conflict_retries: int = 2,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cache = cache
        self.remote = remote
        self.auth = auth
        self.max_conflict_retries = max_conflict_retries
        self._clock = clock

        self.state = SyncState.IDLE
        self.last_report: Optional[SyncReport] = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def sync(self) -> SyncReport:
        """
        Run one cycle for the signed-in user.

        Skipped without any state change when nobody is signed in or a
        cycle is already running.

        Returns:
            Report of the cycle; failures are reported, not raised
        """
        if self._in_flight:
            logger.info("Sync already in progress - skipping trigger")
            return SyncReport(status=SyncStatus.SKIPPED, error="sync already in progress")

        user_id = self.auth.get_current_user_id()
        if not user_id:
            logger.debug("No signed-in user - skipping sync")
            return SyncReport(status=SyncStatus.SKIPPED, error="not signed in")

        # Set before the first await so concurrent triggers see it
        self._in_flight = True
        try:
            report = await self._run_cycle(user_id)
        finally:
            self._in_flight = False

        self.last_report = report
        return report

    async def _run_cycle(self, user_id: str) -> SyncReport:
        started_at = self._clock()
        report = SyncReport(status=SyncStatus.COMPLETED, user_id=user_id, started_at=started_at)
        cycle: Optional[_Cycle] = None

        try:
            cycle = _Cycle(
                user_id=user_id,
                checkpoint=self.store.get_checkpoint(user_id),
                report=report,
            )
            logger.info(f"Sync started for {user_id} (checkpoint={cycle.checkpoint})")

            await self._pull_and_reconcile(cycle)
            await self._push_with_conflict_retries(cycle)

            if report.applied or report.pushed:
                self.store.set_checkpoint(user_id, started_at, self._clock())
                report.checkpoint = started_at
            else:
                report.checkpoint = cycle.checkpoint
        except (TransportError, ConflictError, StoreError) as e:
            self.state = SyncState.FAILED
            report.status = SyncStatus.FAILED
            report.error = str(e)
            report.finished_at = self._clock()
            log_exception("sync", e, {"user_id": user_id, "phase": "cycle"})
            # Records reconciled before the failure stay stored; views cached before them must go
            if cycle is not None and cycle.changed_store:
                self.cache.invalidate_all()
            return report

        self.state = SyncState.IDLE
        self.cache.invalidate_all()
        report.finished_at = self._clock()
        logger.info(
            f"Sync completed for {user_id}: pulled={report.pulled} applied={report.applied} "
            f"pushed={report.pushed} deferred={report.deferred}"
        )
        return report

    async def _pull_and_reconcile(self, cycle: _Cycle) -> None:
        self.state = SyncState.PULLING
        records = await self.remote.pull(cycle.user_id, since=cycle.checkpoint)
        cycle.report.pulled += len(records)

        self.state = SyncState.RECONCILING
        for record in records:
            self._reconcile(cycle, record)

    def _reconcile(self, cycle: _Cycle, record: RemoteRecord) -> None:
        """Resolve one pulled record against its local copy."""
        kind = record.entity_kind
        try:
            remote = record.to_snapshot()
        except pydantic.ValidationError as e:
            raise TransportError(f"Malformed remote {kind.value} record {record.record.get('id')}: {e}") from e

        key = (kind, remote.id)
        existing = self.store.get_any(kind, remote.id)

        if existing is None:
            self._apply(cycle, kind, remote, key)
            return

        local, synced_version = existing

        if remote.version > local.version:
            self._apply(cycle, kind, remote, key)
        elif local.version > remote.version:
            if cycle.checkpoint is None or local.updated_at > cycle.checkpoint:
                cycle.report.deferred += 1
        elif local.content() == remote.content():
            if synced_version < local.version:
                self.store.mark_synced(kind, local.id, local.version)
        elif local.updated_at > remote.updated_at:
            # Local wins; push a strictly newer version
            self.store.restamp(kind, local.id, self._clock())
            cycle.restamped += 1
            cycle.report.deferred += 1
            logger.info(f"Divergent {kind.value} {local.id} v{local.version}: local wins")
        else:
            self._apply(cycle, kind, remote, key)
            logger.info(f"Divergent {kind.value} {local.id} v{local.version}: remote wins")

    def _apply(self, cycle: _Cycle, kind: EntityKind, remote, key: RecordKey) -> None:
        self.store.upsert_remote(kind, remote)
        cycle.remote_won.add(key)
        cycle.report.applied += 1

    async def _push_with_conflict_retries(self, cycle: _Cycle) -> None:
        while True:
            try:
                await self._push(cycle)
                return
            except ConflictError as e:
                if cycle.report.conflict_retries >= self.max_conflict_retries:
                    raise
                cycle.report.conflict_retries += 1
                logger.warning(
                    f"Push conflict on {len(e.record_ids)} record(s); re-pulling "
                    f"(retry {cycle.report.conflict_retries}/{self.max_conflict_retries})"
                )
                await self._pull_and_reconcile(cycle)

    async def _push(self, cycle: _Cycle) -> None:
        self.state = SyncState.PUSHING
        candidates = [
            (kind, snapshot)
            for kind, snapshot in self.store.pending_push(cycle.checkpoint)
            if (kind, snapshot.id) not in cycle.remote_won
        ]
        if not candidates:
            return

        records: List[RemoteRecord] = [
            RemoteRecord.from_snapshot(kind, snapshot) for kind, snapshot in candidates
        ]
        kinds = {snapshot.id: kind for kind, snapshot in candidates}

        acks = await self.remote.push(cycle.user_id, records)
        for ack in acks:
            kind = kinds.get(ack.id)
            if kind is not None:
                self.store.mark_synced(kind, ack.id, ack.accepted_version)
        cycle.report.pushed += len(acks)

    def get_status(self) -> Dict[str, Any]:
        """Current state plus the last cycle's report."""
        return {
            "state": self.state.value,
            "in_flight": self._in_flight,
            "user_id": self.auth.get_current_user_id(),
            "last_report": self.last_report.to_dict() if self.last_report else None,
        }
