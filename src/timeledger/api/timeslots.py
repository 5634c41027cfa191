"""Time slot API endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..domain.entities import TimeSlotFields, TimeSlotPatch
from ..store.queries import QueryLayer
from .dependencies import get_queries
from .schemas import ProblemDetails, TimeSlotListResponse, TimeSlotResponse

router = APIRouter(prefix="/v1/timeslots", tags=["timeslots"])

NOT_FOUND = {404: {"model": ProblemDetails, "description": "Time slot not found"}}


def _response(slot) -> TimeSlotResponse:
    return TimeSlotResponse.model_validate(slot)


@router.get("", response_model=TimeSlotListResponse)
async def list_timeslots(
    start: datetime = Query(..., description="Inclusive lower bound on slot start"),
    end: datetime = Query(..., description="Inclusive upper bound on slot start"),
    queries: QueryLayer = Depends(get_queries),
) -> TimeSlotListResponse:
    """List active time slots starting within ``[start, end]``, ordered by start."""
    slots = queries.timeslots.get_range(start, end)
    return TimeSlotListResponse(timeslots=[_response(slot) for slot in slots])


@router.post(
    "",
    response_model=TimeSlotResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ProblemDetails, "description": "Validation error"}},
)
async def create_timeslot(
    slot_data: TimeSlotFields, queries: QueryLayer = Depends(get_queries)
) -> TimeSlotResponse:
    """Record a new time slot; ``start`` must be before ``end``."""
    return _response(queries.timeslots.create(slot_data))


@router.get("/{slot_id}", response_model=TimeSlotResponse, responses=NOT_FOUND)
async def get_timeslot(slot_id: UUID, queries: QueryLayer = Depends(get_queries)) -> TimeSlotResponse:
    return _response(queries.timeslots.get(slot_id))


@router.patch(
    "/{slot_id}",
    response_model=TimeSlotResponse,
    responses={**NOT_FOUND, 422: {"model": ProblemDetails, "description": "Validation error"}},
)
async def update_timeslot(
    slot_id: UUID, patch: TimeSlotPatch, queries: QueryLayer = Depends(get_queries)
) -> TimeSlotResponse:
    """Move, resize or retag a slot. The merged interval is validated."""
    return _response(queries.timeslots.update(slot_id, patch))


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT, responses=NOT_FOUND)
async def delete_timeslot(slot_id: UUID, queries: QueryLayer = Depends(get_queries)) -> None:
    queries.timeslots.soft_delete(slot_id)
