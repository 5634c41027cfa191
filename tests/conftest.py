"""Pytest configuration and shared fixtures."""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

# Must be set before timeledger creates its loggers or loads configuration
os.environ["TIMELEDGER_LOG_TO_FILE"] = "0"
os.environ.setdefault(
    "TIMELEDGER_CONFIG_FILE",
    str(Path(tempfile.gettempdir()) / "timeledger-tests" / "missing-config.json"),
)

import pytest
from fastapi.testclient import TestClient

from timeledger.auth.provider import LocalAuthProvider
from timeledger.cache.data_cache import DataCache
from timeledger.config import TimeLedgerConfig
from timeledger.context import build_context
from timeledger.db.database import create_database_engine, create_session_factory, init_schema
from timeledger.main import create_app
from timeledger.store.entity_store import EntityStore
from timeledger.store.garbage_collector import GarbageCollector
from timeledger.store.queries import QueryLayer
from timeledger.sync.engine import SyncEngine
from timeledger.sync.remote import InMemoryRemoteStore

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced wall clock with a matching monotonic reading."""

    def __init__(self, now: datetime = START):
        self.now = now
        self._origin = now

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return (self.now - self._origin).total_seconds()

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Device:
    """One local installation: its own database, cache and sync engine."""

    def __init__(self, remote, auth, clock: FakeClock):
        self.engine = create_database_engine("sqlite://")
        init_schema(self.engine)
        self.store = EntityStore(create_session_factory(self.engine))
        self.cache = DataCache(default_ttl=5.0, clock=clock.monotonic)
        self.queries = QueryLayer(self.store, self.cache, clock=clock)
        self.sync = SyncEngine(self.store, self.cache, remote, auth, clock=clock)

    def close(self) -> None:
        self.engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with the schema created."""
    engine = create_database_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(db_engine) -> EntityStore:
    return EntityStore(create_session_factory(db_engine))


@pytest.fixture
def cache(clock) -> DataCache:
    return DataCache(default_ttl=5.0, clock=clock.monotonic)


@pytest.fixture
def queries(store, cache, clock) -> QueryLayer:
    return QueryLayer(store, cache, clock=clock)


@pytest.fixture
def collector(store, cache, clock) -> GarbageCollector:
    return GarbageCollector(store, retention=timedelta(days=7), cache=cache, clock=clock)


@pytest.fixture
def remote(clock) -> InMemoryRemoteStore:
    return InMemoryRemoteStore(clock=clock)


@pytest.fixture
def auth() -> LocalAuthProvider:
    return LocalAuthProvider("user-1")


@pytest.fixture
def sync_engine(store, cache, remote, auth, clock) -> SyncEngine:
    return SyncEngine(store, cache, remote, auth, max_conflict_retries=2, clock=clock)


@pytest.fixture
def make_device(remote, auth, clock):
    """Factory for extra devices sharing the remote, user and clock."""
    devices = []

    def factory() -> Device:
        device = Device(remote, auth, clock)
        devices.append(device)
        return device

    yield factory

    for device in devices:
        device.close()


@pytest.fixture
def app_context(db_engine, remote, auth, clock):
    config = TimeLedgerConfig()
    config.app.enable_cors = False
    return build_context(
        config=config,
        engine=db_engine,
        remote=remote,
        auth=auth,
        clock=clock,
        cache_clock=clock.monotonic,
    )


@pytest.fixture
def client(app_context) -> Generator[TestClient, None, None]:
    """Test client around an isolated context; the scheduler stays off."""
    app = create_app(app_context, start_scheduler=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def domain(queries):
    return queries.domains.create({"name": "Work", "color": "#3366ff"})


@pytest.fixture
def tag(queries, domain):
    return queries.tags.create({"domain_id": domain.id, "name": "Coding", "color": "#112233"})
