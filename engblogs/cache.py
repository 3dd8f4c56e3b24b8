"""Conditional-request cache shared by concurrent feed fetches."""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .dates import ensure_utc
from .models import CacheRecord, Entry

logger = logging.getLogger(__name__)


class FeedCache:
    """Feed URL to :class:`CacheRecord` mapping guarded by a single lock.

    The lock only covers map access; callers must never hold it across a
    network request.
    """

    def __init__(self, records: Optional[Mapping[str, CacheRecord]] = None) -> None:
        self._records: Dict[str, CacheRecord] = dict(records or {})
        self._lock = threading.Lock()

    def get(self, feed_url: str) -> Optional[CacheRecord]:
        with self._lock:
            return self._records.get(feed_url)

    def put(self, feed_url: str, record: CacheRecord) -> None:
        with self._lock:
            self._records[feed_url] = record

    def validators(self, feed_url: str) -> Tuple[Optional[str], Optional[str]]:
        """Return the ``(etag, last_modified)`` pair stored for a feed."""
        with self._lock:
            record = self._records.get(feed_url)
        if record is None:
            return None, None
        return record.etag or None, record.last_modified or None

    def records(self) -> Dict[str, CacheRecord]:
        with self._lock:
            return dict(self._records)

    def all_entries(self) -> List[Entry]:
        """Every cached entry across feeds, used to rebuild without fetching."""
        entries: List[Entry] = []
        for record in self.records().values():
            entries.extend(record.entries)
        return entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, feed_url: object) -> bool:
        with self._lock:
            return feed_url in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self.records())


def entry_to_dict(entry: Entry) -> Dict[str, Any]:
    return {
        "source_name": entry.source_name,
        "source_url": entry.source_url,
        "title": entry.title,
        "url": entry.url,
        "published": entry.published.isoformat() if entry.published else None,
    }


def entry_from_dict(payload: Mapping[str, Any]) -> Entry:
    published = payload.get("published")
    return Entry(
        source_name=payload.get("source_name") or "",
        source_url=payload.get("source_url") or "",
        title=payload.get("title") or "",
        url=payload["url"],
        published=ensure_utc(datetime.fromisoformat(published)) if published else None,
    )


def record_to_dict(record: CacheRecord) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if record.etag:
        payload["etag"] = record.etag
    if record.last_modified:
        payload["last_modified"] = record.last_modified
    payload["entries"] = [entry_to_dict(entry) for entry in record.entries]
    return payload


def record_from_dict(payload: Mapping[str, Any]) -> CacheRecord:
    return CacheRecord(
        etag=payload.get("etag") or None,
        last_modified=payload.get("last_modified") or None,
        entries=[entry_from_dict(item) for item in payload.get("entries") or []],
    )


def load_cache(path: str) -> FeedCache:
    """Load the JSON cache file; a missing or unreadable file gives an empty cache."""
    location = Path(path)
    try:
        payload = json.loads(location.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.info("No cache file at %s; starting with an empty cache", location)
        return FeedCache()
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable cache file %s: %s", location, exc)
        return FeedCache()

    if not isinstance(payload, dict):
        logger.warning("Ignoring cache file %s: expected a JSON object", location)
        return FeedCache()

    try:
        records = {
            str(feed_url): record_from_dict(item) for feed_url, item in payload.items()
        }
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Ignoring malformed cache file %s: %s", location, exc)
        return FeedCache()

    logger.info("Loaded %d cached feeds from %s", len(records), location)
    return FeedCache(records)


def save_cache(path: str, cache: FeedCache) -> bool:
    """Persist the cache as JSON. Failures are logged and reported as ``False``."""
    location = Path(path)
    serialisable = {
        feed_url: record_to_dict(record)
        for feed_url, record in sorted(cache.records().items())
    }
    tmp_location = location.with_name(location.name + ".tmp")
    try:
        if location.parent and not location.parent.exists():
            location.parent.mkdir(parents=True, exist_ok=True)
        tmp_location.write_text(
            json.dumps(serialisable, ensure_ascii=False), encoding="utf-8"
        )
        os.replace(tmp_location, location)
    except (OSError, TypeError, ValueError) as exc:
        logger.error("Could not write cache file %s: %s", location, exc)
        return False

    logger.info("Saved %d cached feeds to %s", len(serialisable), location)
    return True
