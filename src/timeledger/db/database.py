"""Database configuration and setup."""

import logging
import time
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Query performance logger
query_logger = logging.getLogger("sqlalchemy.query_performance")

DEFAULT_DATABASE_URL = "sqlite:///./timeledger.db"

# Base class for models
Base = declarative_base()


def _is_sqlite_url(url: str) -> bool:
    """Check if database URL is for SQLite."""
    return url.startswith("sqlite:")


def _is_memory_sqlite_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def _setup_sqlite_pragma(dbapi_connection, connection_record):
    """Set SQLite pragmas for better performance and concurrency."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=5000")  # 5 second timeout for concurrent access
    cursor.execute("PRAGMA temp_store=MEMORY")
    cursor.close()


def _setup_query_logging(engine: Engine, enable_query_logging: bool = False):
    """Set up query performance logging if enabled."""
    if not enable_query_logging:
        return

    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):
        context._query_start_time = time.time()

    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):
        total = time.time() - context._query_start_time

        # Log slow queries (>100ms) as warnings, others as debug
        if total > 0.1:
            query_logger.warning(
                f"Slow query ({total:.3f}s): {statement[:200]}{'...' if len(statement) > 200 else ''}"
            )
        else:
            query_logger.debug(
                f"Query ({total:.3f}s): {statement[:100]}{'...' if len(statement) > 100 else ''}"
            )


def create_database_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
    enable_query_logging: bool = False,
) -> Engine:
    """Create database engine with appropriate configuration."""
    database_url = database_url or DEFAULT_DATABASE_URL

    if _is_memory_sqlite_url(database_url):
        # A single shared connection, otherwise every session gets its own empty database
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    elif _is_sqlite_url(database_url):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

        # Enable WAL mode and other SQLite optimizations
        event.listen(engine, "connect", _setup_sqlite_pragma)
    else:
        engine = create_engine(database_url, echo=echo, pool_pre_ping=True)

    _setup_query_logging(engine, enable_query_logging)

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory whose objects stay readable after commit."""
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


def init_schema(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
