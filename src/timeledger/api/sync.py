"""Sync trigger and status endpoints."""

from fastapi import APIRouter, Depends

from ..sync.engine import SyncEngine
from .dependencies import get_sync_engine
from .schemas import SyncReportResponse, SyncStatusResponse

router = APIRouter(prefix="/v1/sync", tags=["sync"])


@router.post("", response_model=SyncReportResponse)
async def trigger_sync(engine: SyncEngine = Depends(get_sync_engine)) -> SyncReportResponse:
    """
    Run one sync cycle and report its outcome.

    A failed cycle is reported with ``status="failed"`` rather than an error
    status; a trigger while a cycle runs, or while signed out, is skipped.
    """
    report = await engine.sync()
    return SyncReportResponse(**report.to_dict())


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(engine: SyncEngine = Depends(get_sync_engine)) -> SyncStatusResponse:
    """Current engine state and the last cycle's report."""
    return SyncStatusResponse(**engine.get_status())
