"""Time attribution statistics endpoints."""

from datetime import date, datetime, time, timedelta, timezone
from typing import List

from fastapi import APIRouter, Depends, Query

from ..core.enums import AttributionMode
from ..core.errors import ValidationError
from ..domain.entities import as_utc
from ..domain.stats import (
    DomainStat,
    SubtagStat,
    calculate_domain_stats,
    format_duration,
    generate_daily_summary,
    get_top_subtags,
)
from ..store.queries import QueryLayer
from ..utils.logging_config import get_logger
from .dependencies import get_queries
from .schemas import (
    DailySummaryResponse,
    DomainStatResponse,
    ProblemDetails,
    StatsResponse,
    SubtagStatResponse,
)

logger = get_logger("stats")

router = APIRouter(prefix="/v1/stats", tags=["stats"])


def _subtag(subtag: SubtagStat) -> SubtagStatResponse:
    return SubtagStatResponse(
        tag_id=subtag.tag_id,
        name=subtag.name,
        minutes=subtag.minutes,
        formatted=format_duration(subtag.minutes),
    )


def _domain(stat: DomainStat) -> DomainStatResponse:
    return DomainStatResponse(
        domain_id=stat.domain_id,
        domain=stat.domain,
        color=stat.color,
        minutes=stat.minutes,
        formatted=format_duration(stat.minutes),
        percentage=stat.percentage,
        subtags=[_subtag(subtag) for subtag in stat.subtags],
    )


def _day_bounds(day: date):
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def build_stats(
    queries: QueryLayer, start: datetime, end: datetime, mode: AttributionMode
) -> List[DomainStat]:
    """Aggregate a fresh read of slots in ``[start, end]``."""
    slots, tags, domains = queries.stats_inputs(start, end)
    stats = calculate_domain_stats(slots, tags, domains, mode)
    logger.debug(f"Aggregated {len(slots)} slot(s) into {len(stats)} domain(s) ({mode.value})")
    return stats


@router.get(
    "",
    response_model=StatsResponse,
    responses={422: {"model": ProblemDetails, "description": "Invalid range"}},
)
async def get_stats(
    start: datetime = Query(..., description="Inclusive lower bound on slot start"),
    end: datetime = Query(..., description="Inclusive upper bound on slot start"),
    mode: AttributionMode = Query(AttributionMode.SPLIT, description="split or primary"),
    queries: QueryLayer = Depends(get_queries),
) -> StatsResponse:
    """Per-domain and per-tag minutes for slots starting within ``[start, end]``."""
    start, end = as_utc(start), as_utc(end)
    if start > end:
        raise ValidationError("Invalid range: start must not be after end")

    stats = build_stats(queries, start, end, mode)
    total = sum(stat.minutes for stat in stats)
    return StatsResponse(
        start=start,
        end=end,
        mode=mode,
        total_minutes=total,
        total_formatted=format_duration(total),
        domains=[_domain(stat) for stat in stats],
        top_subtags=[_subtag(subtag) for subtag in get_top_subtags(stats, 3)],
    )


@router.get("/summary", response_model=DailySummaryResponse)
async def get_daily_summary(
    day: date = Query(..., description="Day to summarize (UTC)"),
    mode: AttributionMode = Query(AttributionMode.SPLIT),
    queries: QueryLayer = Depends(get_queries),
) -> DailySummaryResponse:
    """Render one day's statistics as a markdown journal entry."""
    start, end = _day_bounds(day)
    slots = queries.timeslots.get_for_day(day)
    tags = queries.tags.get_all_live()
    stats = build_stats(queries, start, end, mode)

    markdown = generate_daily_summary(stats, day.strftime("%A, %B %d, %Y"), slots=slots, tags=tags)
    return DailySummaryResponse(day=day, mode=mode, markdown=markdown)
