"""Time-window filtering, deduplication and day grouping of entries."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List

from .models import DateGroup, Entry

logger = logging.getLogger(__name__)

DEFAULT_MAX_DAYS = 7


def normalize_url(url: str) -> str:
    return url.strip().rstrip("/")


def filter_recent(
    entries: Iterable[Entry], now: datetime, max_days: int = DEFAULT_MAX_DAYS
) -> List[Entry]:
    """Keep entries published strictly after ``now - max_days``. Undated entries never qualify."""
    cutoff = now - timedelta(days=max_days)
    return [
        entry
        for entry in entries
        if entry.published is not None and entry.published > cutoff
    ]


def deduplicate_entries(entries: Iterable[Entry]) -> List[Entry]:
    """Drop entries whose normalized URL was already seen, keeping the first."""
    seen = set()
    unique: List[Entry] = []
    for entry in entries:
        key = normalize_url(entry.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique


def _sort_key(entry: Entry) -> datetime:
    if entry.published is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return entry.published


def sort_entries(entries: Iterable[Entry]) -> List[Entry]:
    """Newest first; stable for equal timestamps, undated entries last."""
    return sorted(entries, key=_sort_key, reverse=True)


def format_day(day: date) -> str:
    return f"{day:%A, %B} {day.day}, {day.year}"


def group_by_date(entries: Iterable[Entry]) -> List[DateGroup]:
    """Bucket sorted entries by UTC calendar day, in order of first appearance."""
    groups: Dict[date, DateGroup] = {}
    for entry in entries:
        published = _sort_key(entry).astimezone(timezone.utc)
        day = published.date()
        group = groups.get(day)
        if group is None:
            group = groups[day] = DateGroup(label=format_day(day))
        group.entries.append(entry)
    return list(groups.values())


def process(
    entries: Iterable[Entry], now: datetime, max_days: int = DEFAULT_MAX_DAYS
) -> List[DateGroup]:
    """Filter, deduplicate, sort and group entries for display."""
    recent = filter_recent(entries, now, max_days)
    unique = deduplicate_entries(recent)
    ordered = sort_entries(unique)
    groups = group_by_date(ordered)
    logger.info(
        "Kept %d of %d recent entries after deduplication, in %d day groups",
        len(ordered),
        len(recent),
        len(groups),
    )
    return groups
