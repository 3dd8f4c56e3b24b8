"""SQL backing store for the feed cache."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .cache import FeedCache, entry_from_dict, entry_to_dict
from .models import CacheRecord

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class FeedCacheModel(Base):
    """Validators and last fetched entries for one feed URL."""

    __tablename__ = "feed_cache"

    feed_url = Column(String, primary_key=True)
    etag = Column(String, nullable=True)
    last_modified = Column(String, nullable=True)
    entries = Column(Text, nullable=False, default="[]")
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


def init_engine(connection_string: Optional[str]) -> Optional[Engine]:
    """Initialize the database engine."""
    if not connection_string:
        return None

    logger.info("Initializing database connection: %s", connection_string)
    engine = create_engine(connection_string)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine)


def load_records(session: Session) -> Dict[str, CacheRecord]:
    """Read every cached feed record."""
    records: Dict[str, CacheRecord] = {}
    for row in session.execute(select(FeedCacheModel)).scalars():
        try:
            entries = [entry_from_dict(item) for item in json.loads(row.entries or "[]")]
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Dropping malformed cache row for %s: %s", row.feed_url, exc)
            continue
        records[row.feed_url] = CacheRecord(
            etag=row.etag, last_modified=row.last_modified, entries=entries
        )
    return records


def save_records(session: Session, records: Dict[str, CacheRecord]) -> None:
    """Insert or update one row per feed record."""
    if not records:
        return

    stmt = select(FeedCacheModel).where(FeedCacheModel.feed_url.in_(list(records)))
    existing = {row.feed_url: row for row in session.execute(stmt).scalars().all()}
    now = datetime.now(timezone.utc)

    for feed_url, record in records.items():
        payload = json.dumps(
            [entry_to_dict(entry) for entry in record.entries], ensure_ascii=False
        )
        row = existing.get(feed_url)
        if row is None:
            session.add(
                FeedCacheModel(
                    feed_url=feed_url,
                    etag=record.etag,
                    last_modified=record.last_modified,
                    entries=payload,
                    updated_at=now,
                )
            )
        else:
            row.etag = record.etag
            row.last_modified = record.last_modified
            row.entries = payload
            row.updated_at = now

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise


def load_cache_from_db(session_factory: sessionmaker[Session]) -> FeedCache:
    """Build a :class:`FeedCache` from the database; errors give an empty cache."""
    try:
        with session_factory() as session:
            records = load_records(session)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not load feed cache from database: %s", exc)
        return FeedCache()
    logger.info("Loaded %d cached feeds from database", len(records))
    return FeedCache(records)


def save_cache_to_db(session_factory: sessionmaker[Session], cache: FeedCache) -> bool:
    records = cache.records()
    try:
        with session_factory() as session:
            save_records(session, records)
    except Exception as exc:  # noqa: BLE001
        logger.error("Could not save feed cache to database: %s", exc)
        return False
    logger.info("Saved %d cached feeds to database", len(records))
    return True
