"""Domain management API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from ..domain.entities import DomainFields, DomainPatch
from ..store.queries import QueryLayer
from .dependencies import get_queries
from .schemas import DomainListResponse, DomainResponse, ProblemDetails

router = APIRouter(prefix="/v1/domains", tags=["domains"])

NOT_FOUND = {404: {"model": ProblemDetails, "description": "Domain not found"}}


@router.get("", response_model=DomainListResponse)
async def list_domains(queries: QueryLayer = Depends(get_queries)) -> DomainListResponse:
    """List domains that are neither archived nor deleted, by display order."""
    domains = queries.domains.get_all_active()
    return DomainListResponse(domains=[DomainResponse.model_validate(d) for d in domains])


@router.get("/archived", response_model=DomainListResponse)
async def list_archived_domains(queries: QueryLayer = Depends(get_queries)) -> DomainListResponse:
    """List archived domains."""
    domains = queries.domains.get_archived()
    return DomainListResponse(domains=[DomainResponse.model_validate(d) for d in domains])


@router.post(
    "",
    response_model=DomainResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ProblemDetails, "description": "Validation error"}},
)
async def create_domain(
    domain_data: DomainFields, queries: QueryLayer = Depends(get_queries)
) -> DomainResponse:
    """Create a new domain."""
    return DomainResponse.model_validate(queries.domains.create(domain_data))


@router.get("/{domain_id}", response_model=DomainResponse, responses=NOT_FOUND)
async def get_domain(domain_id: UUID, queries: QueryLayer = Depends(get_queries)) -> DomainResponse:
    """Get one domain, archived or not."""
    return DomainResponse.model_validate(queries.domains.get(domain_id))


@router.patch("/{domain_id}", response_model=DomainResponse, responses=NOT_FOUND)
async def update_domain(
    domain_id: UUID, patch: DomainPatch, queries: QueryLayer = Depends(get_queries)
) -> DomainResponse:
    """Update name, color or order of a domain."""
    return DomainResponse.model_validate(queries.domains.update(domain_id, patch))


@router.delete("/{domain_id}", status_code=status.HTTP_204_NO_CONTENT, responses=NOT_FOUND)
async def delete_domain(domain_id: UUID, queries: QueryLayer = Depends(get_queries)) -> None:
    """
    Soft-delete a domain.

    Its tags are left untouched; they stop counting towards stats because
    their domain can no longer be resolved.
    """
    queries.domains.soft_delete(domain_id)


@router.post("/{domain_id}/archive", response_model=DomainResponse, responses=NOT_FOUND)
async def archive_domain(domain_id: UUID, queries: QueryLayer = Depends(get_queries)) -> DomainResponse:
    """Hide a domain from active views without deleting it."""
    return DomainResponse.model_validate(queries.domains.archive(domain_id))


@router.post("/{domain_id}/unarchive", response_model=DomainResponse, responses=NOT_FOUND)
async def unarchive_domain(
    domain_id: UUID, queries: QueryLayer = Depends(get_queries)
) -> DomainResponse:
    """Return an archived domain to active views."""
    return DomainResponse.model_validate(queries.domains.unarchive(domain_id))
