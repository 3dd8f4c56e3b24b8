"""Shared data models for engblogs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Feed:
    """A subscribed feed, identified by its feed URL."""

    title: str
    url: str
    site_url: str = ""


@dataclass
class Entry:
    """Normalized item extracted from a feed."""

    source_name: str
    source_url: str
    title: str
    url: str
    published: Optional[datetime] = None


@dataclass
class CacheRecord:
    """Validators and last successfully fetched entries for one feed."""

    etag: Optional[str] = None
    last_modified: Optional[str] = None
    entries: List[Entry] = field(default_factory=list)


@dataclass
class DateGroup:
    label: str
    entries: List[Entry] = field(default_factory=list)


@dataclass
class FetchStats:
    """Aggregate outcome of a fetch run."""

    total: int = 0
    success: int = 0
    failed: int = 0
    failures: List[Tuple[Feed, str]] = field(default_factory=list)
