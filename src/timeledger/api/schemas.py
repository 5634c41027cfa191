"""Pydantic models for API request/response validation."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import AttributionMode, SyncState, SyncStatus


class BaseResponse(BaseModel):
    """Base response model with common fields."""

    model_config = ConfigDict(from_attributes=True)


class ProblemDetails(BaseModel):
    """RFC 9457 Problem Details for HTTP APIs."""

    type: str = Field(description="A URI reference that identifies the problem type")
    title: str = Field(description="A short, human-readable summary of the problem type")
    status: int = Field(description="The HTTP status code")
    detail: Optional[str] = Field(
        None, description="A human-readable explanation specific to this occurrence"
    )
    instance: Optional[str] = Field(
        None, description="A URI reference that identifies the specific occurrence"
    )


# Entity schemas
class EntityResponse(BaseResponse):
    """Versioning metadata returned with every record."""

    id: UUID
    version: int
    created_at: datetime
    updated_at: datetime


class DomainResponse(EntityResponse):
    """Schema for domain response."""

    name: str
    color: str
    order: int
    archived_at: Optional[datetime] = None


class DomainListResponse(BaseModel):
    """Schema for domain list response."""

    domains: List[DomainResponse]


class TagResponse(EntityResponse):
    """Schema for tag response."""

    domain_id: UUID
    name: str
    color: str
    archived_at: Optional[datetime] = None


class TagListResponse(BaseModel):
    """Schema for tag list response."""

    tags: List[TagResponse]


class TimeSlotResponse(EntityResponse):
    """Schema for time slot response."""

    start: datetime
    end: datetime
    tag_ids: List[UUID]
    note: Optional[str] = None
    duration_minutes: float


class TimeSlotListResponse(BaseModel):
    """Schema for time slot list response."""

    timeslots: List[TimeSlotResponse]


# Stats schemas
class SubtagStatResponse(BaseResponse):
    """Minutes credited to one tag."""

    tag_id: UUID
    name: str
    minutes: float
    formatted: str


class DomainStatResponse(BaseResponse):
    """Minutes credited to one domain."""

    domain_id: UUID
    domain: str
    color: str
    minutes: float
    formatted: str
    percentage: float
    subtags: List[SubtagStatResponse]


class StatsResponse(BaseModel):
    """Schema for an aggregation over a time range."""

    start: datetime
    end: datetime
    mode: AttributionMode
    total_minutes: float
    total_formatted: str
    domains: List[DomainStatResponse]
    top_subtags: List[SubtagStatResponse]


class DailySummaryResponse(BaseModel):
    """Schema for a rendered daily summary."""

    day: date
    mode: AttributionMode
    markdown: str


# Sync schemas
class SyncReportResponse(BaseModel):
    """Schema for the outcome of one sync trigger."""

    status: SyncStatus
    user_id: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    pulled: int = 0
    applied: int = 0
    pushed: int = 0
    deferred: int = 0
    conflict_retries: int = 0
    checkpoint: Optional[datetime] = None
    error: Optional[str] = None


class SyncStatusResponse(BaseModel):
    """Schema for sync engine status."""

    state: SyncState
    in_flight: bool
    user_id: Optional[str] = None
    last_report: Optional[SyncReportResponse] = None
