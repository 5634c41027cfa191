"""Sync with a remote store: engine, remotes, scheduler."""

from .circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState
from .engine import SyncEngine, SyncReport
from .http_remote import HttpRemoteStore
from .remote import InMemoryRemoteStore, PushAck, RemoteRecord, RemoteStore
from .scheduler import SyncScheduler

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "SyncEngine",
    "SyncReport",
    "HttpRemoteStore",
    "InMemoryRemoteStore",
    "PushAck",
    "RemoteRecord",
    "RemoteStore",
    "SyncScheduler",
]
