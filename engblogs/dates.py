"""Timestamp normalization for feed dates."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

# strptime's %f stops at microseconds; RFC 3339 allows nanoseconds.
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


def ensure_utc(value: datetime) -> Optional[datetime]:
    """Return a timezone-aware datetime normalized to UTC."""
    try:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def _layout(fmt: str) -> Callable[[str], datetime]:
    def parse(value: str) -> datetime:
        return datetime.strptime(value, fmt)

    return parse


def _rfc2822_named_zone(value: str) -> datetime:
    """RFC 2822 dates with zone names such as GMT or PDT.

    Unknown zone names come back naive and are read as UTC.
    """
    return parsedate_to_datetime(value)


_LAYOUTS: List[Callable[[str], datetime]] = [
    # ISO 8601 with zone, with and without fractional seconds.
    _layout("%Y-%m-%dT%H:%M:%S%z"),
    _layout("%Y-%m-%dT%H:%M:%S.%f%z"),
    # ISO 8601 without zone.
    _layout("%Y-%m-%dT%H:%M:%S"),
    _layout("%Y-%m-%dT%H:%M:%S.%f"),
    _layout("%Y-%m-%d %H:%M:%S"),
    # RFC 2822 with numeric offsets.
    _layout("%a, %d %b %Y %H:%M:%S %z"),
    _layout("%d %b %Y %H:%M:%S %z"),
    _rfc2822_named_zone,
    _layout("%Y-%m-%d"),
]


def parse_time(raw: Optional[str]) -> Optional[datetime]:
    """Parse a feed timestamp into a UTC datetime.

    Layouts are tried in order and the first one that parses wins. Empty or
    unparseable input yields ``None`` so that a bad date never drops an entry.
    """
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    value = _LONG_FRACTION.sub(r"\1", value)

    for layout in _LAYOUTS:
        try:
            parsed = layout(value)
        except (TypeError, ValueError, IndexError, OverflowError):
            continue
        return ensure_utc(parsed)

    logger.debug("Unparseable timestamp: %r", raw)
    return None
