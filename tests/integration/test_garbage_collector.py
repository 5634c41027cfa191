"""Integration tests for the tombstone sweep."""

from unittest.mock import Mock
from uuid import uuid4

import pytest

from timeledger.core.enums import EntityKind, SyncStatus
from timeledger.core.errors import StoreError, TransportError
from timeledger.domain.entities import DomainEntity
from timeledger.store.garbage_collector import GarbageCollector, run_startup_gc
from timeledger.sync.engine import SyncEngine
from timeledger.sync.remote import InMemoryRemoteStore, RemoteRecord

USER = "user-1"


class FlakyPushRemote(InMemoryRemoteStore):
    """Pulls work; pushes fail until ``push_fails`` is cleared."""

    def __init__(self, clock):
        super().__init__(clock=clock)
        self.push_fails = True

    async def push(self, user_id, records):
        if self.push_fails:
            raise TransportError("connection reset")
        return await super().push(user_id, records)


@pytest.mark.integration
class TestRetention:
    """Test the seven day retention window."""

    def test_tombstone_erased_after_retention(self, collector, queries, store, clock, domain):
        queries.domains.soft_delete(domain.id)
        clock.advance(days=7)

        report = collector.sweep()

        assert report.erased[EntityKind.DOMAINS] == 1
        assert report.total_erased == 1
        assert store.get_any(EntityKind.DOMAINS, domain.id) is None

    def test_tombstone_kept_inside_retention(self, collector, queries, store, clock, domain):
        queries.domains.soft_delete(domain.id)
        clock.advance(days=6, hours=23)

        report = collector.sweep()

        assert report.total_erased == 0
        assert store.get(EntityKind.DOMAINS, domain.id, include_deleted=True) is not None

    def test_live_records_never_erased(self, collector, queries, clock, domain, tag):
        clock.advance(days=30)

        assert collector.sweep().total_erased == 0
        assert queries.tags.get_all_active() == [tag]

    def test_every_kind_swept(self, collector, queries, clock, domain, tag):
        queries.tags.soft_delete(tag.id)
        queries.domains.soft_delete(domain.id)
        clock.advance(days=8)

        report = collector.sweep()

        assert report.erased == {EntityKind.DOMAINS: 1, EntityKind.TAGS: 1, EntityKind.TIMESLOTS: 0}

    def test_sweep_evicts_erased_kinds_only(self, collector, queries, cache, clock, domain, tag):
        queries.tags.soft_delete(tag.id)
        clock.advance(days=7)
        queries.domains.get_all_active()
        queries.tags.get_all_live()

        collector.sweep()

        assert "tags:all:live" not in cache
        assert "domains:all:active" in cache


@pytest.mark.integration
class TestPushGate:
    """Test that tombstones of records the remote holds wait for their push."""

    def test_unpushed_tombstone_retained(self, collector, queries, store, clock, domain):
        store.mark_synced(EntityKind.DOMAINS, domain.id, domain.version)
        deleted = queries.domains.soft_delete(domain.id)
        clock.advance(days=10)

        report = collector.sweep()

        assert report.total_erased == 0
        assert report.retained_unpushed == 1

        store.mark_synced(EntityKind.DOMAINS, domain.id, deleted.version)
        report = collector.sweep()

        assert report.total_erased == 1
        assert report.retained_unpushed == 0

    def test_gate_disabled(self, store, queries, clock, domain):
        store.mark_synced(EntityKind.DOMAINS, domain.id, domain.version)
        queries.domains.soft_delete(domain.id)
        clock.advance(days=7)

        collector = GarbageCollector(store, require_pushed=False, clock=clock)

        assert collector.sweep().total_erased == 1

    def test_record_remote_never_saw_erased_by_age(self, collector, queries, store, clock, domain):
        store.set_checkpoint(USER, clock.now, clock.now)
        queries.domains.soft_delete(domain.id)
        clock.advance(days=7)

        report = collector.sweep()

        assert report.total_erased == 1
        assert report.retained_unpushed == 0

    @pytest.mark.asyncio
    async def test_deletion_of_pulled_record_survives_failed_first_sync(
        self, collector, queries, store, cache, auth, clock, domain
    ):
        remote = FlakyPushRemote(clock)
        pulled = DomainEntity(
            id=uuid4(), version=1, created_at=clock.now, updated_at=clock.now,
            name="Remote", color="#000000",
        )
        remote.put(USER, RemoteRecord.from_snapshot(EntityKind.DOMAINS, pulled))
        engine = SyncEngine(store, cache, remote, auth, clock=clock)

        first = await engine.sync()
        assert first.status is SyncStatus.FAILED
        assert first.applied == 1
        assert store.get_checkpoint(USER) is None

        clock.advance(minutes=1)
        queries.domains.soft_delete(pulled.id)
        clock.advance(days=8)

        report = collector.sweep()
        assert report.total_erased == 0
        assert report.retained_unpushed == 1

        remote.push_fails = False
        assert (await engine.sync()).status is SyncStatus.COMPLETED
        assert remote.get(USER, EntityKind.DOMAINS, pulled.id).deleted_at is not None
        assert collector.sweep().total_erased == 1

        clock.advance(minutes=1)
        await engine.sync()
        assert [d.name for d in queries.domains.get_all_active()] == ["Work"]


@pytest.mark.integration
class TestStartupGC:
    """Test the startup wrapper."""

    def test_returns_report(self, collector):
        report = run_startup_gc(collector)
        assert report is not None
        assert report.total_erased == 0

    def test_failure_logged_not_raised(self):
        collector = Mock(spec=GarbageCollector)
        collector.sweep.side_effect = StoreError("database is locked")

        assert run_startup_gc(collector) is None
        collector.sweep.assert_called_once()
