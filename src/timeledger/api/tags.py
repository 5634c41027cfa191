"""Tag management API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..domain.entities import TagFields, TagPatch
from ..store.queries import QueryLayer
from .dependencies import get_queries
from .schemas import ProblemDetails, TagListResponse, TagResponse

router = APIRouter(prefix="/v1/tags", tags=["tags"])

NOT_FOUND = {404: {"model": ProblemDetails, "description": "Tag not found"}}


@router.get("", response_model=TagListResponse)
async def list_tags(
    domain_id: Optional[UUID] = Query(None, description="Only tags of this domain"),
    queries: QueryLayer = Depends(get_queries),
) -> TagListResponse:
    """List active tags, optionally restricted to one domain."""
    if domain_id is not None:
        tags = queries.tags.get_by_domain(domain_id)
    else:
        tags = queries.tags.get_all_active()
    return TagListResponse(tags=[TagResponse.model_validate(t) for t in tags])


@router.get("/archived", response_model=TagListResponse)
async def list_archived_tags(queries: QueryLayer = Depends(get_queries)) -> TagListResponse:
    """List archived tags."""
    return TagListResponse(tags=[TagResponse.model_validate(t) for t in queries.tags.get_archived()])


@router.post(
    "",
    response_model=TagResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ProblemDetails, "description": "Validation error"}},
)
async def create_tag(tag_data: TagFields, queries: QueryLayer = Depends(get_queries)) -> TagResponse:
    """Create a new tag under a domain."""
    return TagResponse.model_validate(queries.tags.create(tag_data))


@router.get("/{tag_id}", response_model=TagResponse, responses=NOT_FOUND)
async def get_tag(tag_id: UUID, queries: QueryLayer = Depends(get_queries)) -> TagResponse:
    return TagResponse.model_validate(queries.tags.get(tag_id))


@router.patch("/{tag_id}", response_model=TagResponse, responses=NOT_FOUND)
async def update_tag(
    tag_id: UUID, patch: TagPatch, queries: QueryLayer = Depends(get_queries)
) -> TagResponse:
    return TagResponse.model_validate(queries.tags.update(tag_id, patch))


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT, responses=NOT_FOUND)
async def delete_tag(tag_id: UUID, queries: QueryLayer = Depends(get_queries)) -> None:
    """Soft-delete a tag. Time slots keep referencing it."""
    queries.tags.soft_delete(tag_id)


@router.post("/{tag_id}/archive", response_model=TagResponse, responses=NOT_FOUND)
async def archive_tag(tag_id: UUID, queries: QueryLayer = Depends(get_queries)) -> TagResponse:
    return TagResponse.model_validate(queries.tags.archive(tag_id))


@router.post("/{tag_id}/unarchive", response_model=TagResponse, responses=NOT_FOUND)
async def unarchive_tag(tag_id: UUID, queries: QueryLayer = Depends(get_queries)) -> TagResponse:
    return TagResponse.model_validate(queries.tags.unarchive(tag_id))
