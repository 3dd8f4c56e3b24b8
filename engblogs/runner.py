"""High-level orchestration for the engblogs application."""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from . import db
from .cache import FeedCache, load_cache, save_cache
from .config import parse_feeds_config
from .errors import FeedFetchError
from .fetcher import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, FeedFetcher, build_session
from .grouping import DEFAULT_MAX_DAYS, process
from .models import DateGroup, Entry, Feed, FetchStats
from .renderers import build_index_html, write_site

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 30


@dataclass
class RunConfig:
    """Runtime options for executing the application."""

    feeds_file: str
    cache_file: str = "cache.json"
    output_dir: str = "public"
    max_days: int = DEFAULT_MAX_DAYS
    cname: Optional[str] = None
    skip_fetch: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: Tuple[float, float] = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    database_enabled: bool = False
    database_connection_string: Optional[str] = None


@dataclass
class RunResult:
    """Returned data after executing the app."""

    groups: List[DateGroup]
    feed_count: int
    entry_count: int
    stats: Optional[FetchStats] = None
    output_path: Optional[Path] = None
    cache_saved: bool = True
    feeds: List[Feed] = field(default_factory=list)


def fetch_all(
    feeds: Sequence[Feed],
    fetch: Callable[[Feed], List[Entry]],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> Tuple[List[Entry], FetchStats]:
    """Run ``fetch`` for every feed with at most ``concurrency`` in flight.

    A failing feed is logged and counted; it never stops the others. Entries
    come back in completion order.
    """
    stats = FetchStats(total=len(feeds))
    entries: List[Entry] = []

    with concurrent.futures.ThreadPoolExecutor(max_workers=concurrency) as executor:
        future_to_feed = {executor.submit(fetch, feed): feed for feed in feeds}
        for future in concurrent.futures.as_completed(future_to_feed):
            feed = future_to_feed[future]
            try:
                fetched = future.result()
            except FeedFetchError as exc:
                stats.failed += 1
                stats.failures.append((feed, exc.message))
                logger.warning("FAIL %s (%s): %s", feed.title, feed.url, exc.message)
                continue
            except Exception as exc:  # noqa: BLE001
                stats.failed += 1
                stats.failures.append((feed, str(exc)))
                logger.exception("Unexpected error fetching %s (%s)", feed.title, feed.url)
                continue
            stats.success += 1
            entries.extend(fetched)

    return entries, stats


def _open_cache(
    config: RunConfig,
) -> Tuple[FeedCache, Callable[[FeedCache], bool]]:
    """Load the cache from its configured store and return it with a saver."""
    if config.database_enabled:
        try:
            engine = db.init_engine(config.database_connection_string)
        except SQLAlchemyError as exc:
            logger.warning(
                "Could not open cache database (%s). Using %s.", exc, config.cache_file
            )
            engine = None
        else:
            if engine is None:
                logger.warning(
                    "Database enabled but no connection string provided. Using %s.",
                    config.cache_file,
                )
        if engine is not None:
            session_factory = db.get_session_factory(engine)
            return (
                db.load_cache_from_db(session_factory),
                lambda cache: db.save_cache_to_db(session_factory, cache),
            )

    return load_cache(config.cache_file), lambda cache: save_cache(
        config.cache_file, cache
    )


def execute(config: RunConfig, now: Optional[datetime] = None) -> RunResult:
    """Fetch all subscriptions, group recent entries and render the page."""
    now = now or datetime.now(timezone.utc)

    feeds = parse_feeds_config(config.feeds_file)
    if not feeds:
        raise RuntimeError("No feeds found in the subscription list.")

    cache, persist = _open_cache(config)

    stats: Optional[FetchStats] = None
    cache_saved = True
    if config.skip_fetch:
        logger.info("Skipping fetch, rebuilding from %d cached feeds", len(cache))
        entries = cache.all_entries()
    else:
        logger.info("Fetching %d feeds (concurrency %d)", len(feeds), config.concurrency)
        fetcher = FeedFetcher(
            cache,
            session=build_session(config.concurrency),
            user_agent=config.user_agent,
            timeout=config.timeout,
        )
        with fetcher.session:
            entries, stats = fetch_all(feeds, fetcher.fetch, config.concurrency)
        cache_saved = persist(cache)
        logger.info(
            "Feeds: %d total, %d ok, %d failed", stats.total, stats.success, stats.failed
        )

    groups = process(entries, now, config.max_days)
    entry_count = sum(len(group.entries) for group in groups)
    logger.info("Entries: %d (last %d days)", entry_count, config.max_days)

    html = build_index_html(
        groups,
        feed_count=len(feeds),
        entry_count=entry_count,
        built_at=now,
        max_days=config.max_days,
        opml_name=Path(config.feeds_file).name,
    )
    output_path = write_site(
        config.output_dir, html, opml_path=config.feeds_file, cname=config.cname
    )

    return RunResult(
        groups=groups,
        feed_count=len(feeds),
        entry_count=entry_count,
        stats=stats,
        output_path=output_path,
        cache_saved=cache_saved,
        feeds=feeds,
    )
