"""Integration tests for periodic and sign-in sync triggers."""

import asyncio

import pytest

from timeledger.auth.provider import LocalAuthProvider
from timeledger.core.enums import SyncStatus
from timeledger.sync.engine import SyncEngine
from timeledger.sync.scheduler import SyncScheduler


async def settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.mark.integration
class TestSyncScheduler:
    """Test the scheduler lifecycle."""

    @pytest.mark.asyncio
    async def test_start_runs_first_cycle_immediately(self, sync_engine, auth, domain):
        scheduler = SyncScheduler(sync_engine, auth, interval_seconds=3600)
        scheduler.start()
        await settle()

        assert scheduler.running
        assert sync_engine.last_report.status is SyncStatus.COMPLETED

        await scheduler.stop()
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_sign_in_triggers_sync(self, store, cache, remote, clock, domain):
        auth = LocalAuthProvider()
        engine = SyncEngine(store, cache, remote, auth, clock=clock)
        scheduler = SyncScheduler(engine, auth, interval_seconds=3600)
        scheduler.start()
        await settle()
        assert engine.last_report is None

        auth.sign_in("user-2")
        await settle()

        assert engine.last_report.user_id == "user-2"
        assert engine.last_report.pushed == 1
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, store, cache, remote, clock):
        auth = LocalAuthProvider()
        engine = SyncEngine(store, cache, remote, auth, clock=clock)
        scheduler = SyncScheduler(engine, auth, interval_seconds=3600)
        scheduler.start()
        await scheduler.stop()

        auth.sign_in("user-2")
        await settle()

        assert engine.last_report is None

    @pytest.mark.asyncio
    async def test_trigger_before_start_is_ignored(self, sync_engine, auth):
        scheduler = SyncScheduler(sync_engine, auth)
        scheduler.trigger()
        await settle()

        assert sync_engine.last_report is None
