"""
Explicit wiring of one application instance.

Every component that shares state (the cache above all) receives it from
here, so tests can build isolated contexts side by side.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .auth.provider import AuthProvider, LocalAuthProvider
from .cache.data_cache import DataCache
from .config import TimeLedgerConfig, get_config
from .db.database import create_database_engine, create_session_factory, init_schema
from .db.models import utcnow
from .store.entity_store import EntityStore
from .store.garbage_collector import GarbageCollector
from .store.queries import QueryLayer
from .sync.circuit_breaker import CircuitBreaker
from .sync.engine import SyncEngine
from .sync.http_remote import HttpRemoteStore
from .sync.remote import InMemoryRemoteStore, RemoteStore
from .sync.scheduler import SyncScheduler
from .utils.logging_config import get_logger

logger = get_logger("main")


@dataclass
class AppContext:
    """Every long-lived component of one application."""

    config: TimeLedgerConfig
    engine: Engine
    session_factory: sessionmaker
    cache: DataCache
    store: EntityStore
    queries: QueryLayer
    gc: GarbageCollector
    auth: AuthProvider
    remote: RemoteStore
    sync_engine: SyncEngine
    scheduler: SyncScheduler

    def dispose(self) -> None:
        """Release database connections."""
        self.engine.dispose()


def build_remote(config: TimeLedgerConfig) -> RemoteStore:
    """HTTP remote when a URL is configured, otherwise an in-process one."""
    sync_config = config.sync
    if not sync_config.remote_url:
        logger.info("No remote URL configured - using in-memory remote store")
        return InMemoryRemoteStore()

    return HttpRemoteStore(
        base_url=sync_config.remote_url,
        token=sync_config.remote_token,
        timeout_secs=sync_config.timeout_secs,
        max_attempts=sync_config.max_attempts,
        backoff_base_seconds=sync_config.backoff_base_seconds,
        backoff_max_seconds=sync_config.backoff_max_seconds,
        backoff_jitter_ratio=sync_config.backoff_jitter_ratio,
        circuit_breaker=CircuitBreaker(
            failure_threshold=sync_config.circuit_failure_threshold,
            timeout_seconds=sync_config.circuit_timeout_seconds,
        ),
    )


def build_context(
    config: Optional[TimeLedgerConfig] = None,
    engine: Optional[Engine] = None,
    remote: Optional[RemoteStore] = None,
    auth: Optional[AuthProvider] = None,
    clock: Callable[[], datetime] = utcnow,
    cache_clock: Optional[Callable[[], float]] = None,
) -> AppContext:
    """
    Build and wire an application context.

    Args:
        config: Configuration; the global configuration if omitted
        engine: Database engine; created from ``config.database`` if omitted
        remote: Remote store; chosen from ``config.sync`` if omitted
        auth: Auth provider; a signed-out local provider if omitted
        clock: Wall clock for timestamps, retention and checkpoints
        cache_clock: Monotonic clock for cache expiry

    Returns:
        The wired context with the schema created
    """
    config = config or get_config()

    if engine is None:
        engine = create_database_engine(
            config.database.url,
            echo=config.database.echo,
            enable_query_logging=config.database.log_queries,
        )
    init_schema(engine)
    session_factory = create_session_factory(engine)

    if cache_clock is None:
        cache = DataCache(default_ttl=config.cache.default_ttl_seconds)
    else:
        cache = DataCache(default_ttl=config.cache.default_ttl_seconds, clock=cache_clock)

    store = EntityStore(session_factory)
    queries = QueryLayer(store, cache, clock=clock)
    gc = GarbageCollector(
        store,
        retention=timedelta(days=config.gc.retention_days),
        require_pushed=config.gc.require_pushed,
        cache=cache,
        clock=clock,
    )

    auth = auth or LocalAuthProvider()
    remote = remote or build_remote(config)
    sync_engine = SyncEngine(
        store,
        cache,
        remote,
        auth,
        max_conflict_retries=config.sync.max_conflict_retries,
        clock=clock,
    )
    scheduler = SyncScheduler(sync_engine, auth, interval_seconds=config.sync.interval_seconds)

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        cache=cache,
        store=store,
        queries=queries,
        gc=gc,
        auth=auth,
        remote=remote,
        sync_engine=sync_engine,
        scheduler=scheduler,
    )
