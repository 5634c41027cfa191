"""FastAPI dependencies resolving components from the application context."""

from fastapi import Request

from ..context import AppContext
from ..store.queries import QueryLayer
from ..sync.engine import SyncEngine


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_queries(request: Request) -> QueryLayer:
    return get_context(request).queries


def get_sync_engine(request: Request) -> SyncEngine:
    return get_context(request).sync_engine
