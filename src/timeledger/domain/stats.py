"""
Pure time-attribution aggregation.

Turns time slots plus tag/domain catalogs into ranked per-domain and
per-tag statistics. No side effects and no store access: callers pass a
fresh read of the data.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Union
from uuid import UUID

from ..core.enums import AttributionMode
from .entities import DomainEntity, TagEntity, TimeSlotEntity


@dataclass(frozen=True)
class SubtagStat:
    """Minutes credited to one tag."""

    tag_id: UUID
    name: str
    minutes: float


@dataclass(frozen=True)
class DomainStat:
    """Minutes credited to one domain and its tags."""

    domain_id: UUID
    domain: str
    color: str
    minutes: float
    percentage: float
    subtags: List[SubtagStat] = field(default_factory=list)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_domain_stats(
    slots: Iterable[TimeSlotEntity],
    tags: Sequence[TagEntity],
    domains: Sequence[DomainEntity],
    mode: Union[AttributionMode, str] = AttributionMode.SPLIT,
) -> List[DomainStat]:
    """
    Aggregate slot durations into per-domain statistics.

    Args:
        slots: Time slots to aggregate; untagged slots contribute nothing
        tags: Tag catalog used to resolve ``tag_ids``
        domains: Domain catalog used to resolve ``Tag.domain_id``
        mode: ``split`` divides a slot evenly across its tags, ``primary``
              credits the whole slot to its first tag

    Returns:
        Domain statistics sorted by minutes descending (stable)
    """
    mode = AttributionMode(mode)

    tag_by_id: Dict[UUID, TagEntity] = {tag.id: tag for tag in tags}
    domain_by_id: Dict[UUID, DomainEntity] = {domain.id: domain for domain in domains}
    tags_by_domain: Dict[UUID, List[TagEntity]] = {}
    for tag in tags:
        tags_by_domain.setdefault(tag.domain_id, []).append(tag)

    # Insertion order of these dicts is the encounter order used for ties
    domain_minutes: Dict[UUID, float] = {}
    tag_minutes: Dict[UUID, float] = {}

    for slot in slots:
        if not slot.tag_ids:
            continue

        duration = slot.duration_minutes
        if mode is AttributionMode.SPLIT:
            credited = list(slot.tag_ids)
            minutes_per_tag = duration / len(slot.tag_ids)
        else:
            credited = [slot.tag_ids[0]]
            minutes_per_tag = duration

        for tag_id in credited:
            tag = tag_by_id.get(tag_id)
            if tag is None or tag.domain_id not in domain_by_id:
                continue

            domain_minutes[tag.domain_id] = domain_minutes.get(tag.domain_id, 0.0) + minutes_per_tag
            tag_minutes[tag_id] = tag_minutes.get(tag_id, 0.0) + minutes_per_tag

    total_minutes = sum(domain_minutes.values())

    stats: List[DomainStat] = []
    for domain_id, minutes in domain_minutes.items():
        domain = domain_by_id[domain_id]
        subtags = [
            SubtagStat(tag_id=tag.id, name=tag.name, minutes=tag_minutes.get(tag.id, 0.0))
            for tag in tags_by_domain.get(domain_id, [])
        ]
        subtags = sorted(
            (subtag for subtag in subtags if subtag.minutes > 0),
            key=lambda subtag: subtag.minutes,
            reverse=True,
        )
        stats.append(
            DomainStat(
                domain_id=domain_id,
                domain=domain.name,
                color=domain.color,
                minutes=minutes,
                percentage=(minutes / total_minutes) * 100 if total_minutes > 0 else 0.0,
                subtags=subtags,
            )
        )

    # sorted() is stable, so equal totals keep encounter order
    return sorted(stats, key=lambda stat: stat.minutes, reverse=True)


def get_top_subtags(domain_stats: Sequence[DomainStat], count: int = 3) -> List[SubtagStat]:
    """Top ``count`` tags across every domain, by minutes descending."""
    all_subtags: List[SubtagStat] = []
    for stat in domain_stats:
        all_subtags.extend(stat.subtags)

    return sorted(all_subtags, key=lambda subtag: subtag.minutes, reverse=True)[:count]


def format_duration(minutes: float) -> str:
    """Format minutes as ``45m``, ``1h`` or ``1h 30m``; halves round up."""
    if minutes < 60:
        return f"{_round_half_up(minutes)}m"

    hours = math.floor(minutes / 60)
    mins = _round_half_up(minutes % 60)

    if mins == 0:
        return f"{hours}h"

    return f"{hours}h {mins}m"


def _format_clock(moment: datetime) -> str:
    display_hours = moment.hour % 12 or 12
    ampm = "PM" if moment.hour >= 12 else "AM"
    return f"{display_hours}:{moment.minute:02d} {ampm}"


def generate_daily_summary(
    domain_stats: Sequence[DomainStat],
    date_label: str,
    slots: Optional[Sequence[TimeSlotEntity]] = None,
    tags: Optional[Sequence[TagEntity]] = None,
) -> str:
    """Render one day's statistics as a markdown journal entry."""
    top_subtags = get_top_subtags(domain_stats, 3)

    lines = [f"## {date_label}", ""]

    if not domain_stats:
        lines.extend(["_No time slots recorded for this day._", ""])
        return "\n".join(lines) + "\n"

    lines.extend(["### Time Allocation", ""])
    for stat in domain_stats:
        lines.append(
            f"- **{stat.domain}**: {format_duration(stat.minutes)} ({stat.percentage:.1f}%)"
        )
        for subtag in stat.subtags[:2]:
            lines.append(f"  - {subtag.name}: {format_duration(subtag.minutes)}")

    lines.extend(["", "### Top Activities", ""])
    for position, subtag in enumerate(top_subtags, start=1):
        lines.append(f"{position}. {subtag.name}: {format_duration(subtag.minutes)}")

    if slots and tags:
        tag_names = {tag.id: tag.name for tag in tags}
        lines.extend(["", "### Day Flow", ""])
        for slot in sorted(slots, key=lambda s: s.start):
            names = [tag_names[tag_id] for tag_id in slot.tag_ids if tag_id in tag_names]
            if not names:
                continue
            duration = _round_half_up(slot.duration_minutes)
            entry = (
                f"- {_format_clock(slot.start)} - {_format_clock(slot.end)} "
                f"({format_duration(duration)}): {', '.join(names)}"
            )
            if slot.note:
                entry += f" - _{slot.note}_"
            lines.append(entry)

    lines.extend(["", "### Reflection", "", "_[Write your thoughts here...]_", ""])
    return "\n".join(lines) + "\n"
