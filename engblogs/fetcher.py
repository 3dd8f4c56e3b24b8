"""HTTP fetching of individual feeds with conditional requests."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter

from .cache import FeedCache
from .errors import FeedFetchError, HTTPStatusError, UnrecognizedFeedFormat
from .feeds import parse_feed
from .models import CacheRecord, Entry, Feed

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "EngBlogs/1.0 (+https://engineeringblogs.xyz)"
DEFAULT_TIMEOUT: Tuple[float, float] = (10.0, 15.0)


def build_session(pool_size: int = 30) -> requests.Session:
    """Return a session that never retries and can serve ``pool_size`` threads."""
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class FeedFetcher:
    """Fetch one feed per call, reusing cached entries when the server allows."""

    def __init__(
        self,
        cache: FeedCache,
        session: Optional[requests.Session] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
    ) -> None:
        self.cache = cache
        self.session = session or build_session()
        self.user_agent = user_agent
        self.timeout = timeout

    def _request_headers(self, feed: Feed) -> dict:
        headers = {"User-Agent": self.user_agent}
        etag, last_modified = self.cache.validators(feed.url)
        if etag:
            headers["If-None-Match"] = etag
        if last_modified:
            headers["If-Modified-Since"] = last_modified
        return headers

    def fetch(self, feed: Feed) -> List[Entry]:
        """Fetch and parse ``feed``; raises :class:`FeedFetchError` on any failure."""
        headers = self._request_headers(feed)
        logger.debug("Fetching feed '%s' (%s)", feed.title, feed.url)

        try:
            response = self.session.get(feed.url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FeedFetchError(feed, str(exc)) from exc

        with response:
            if response.status_code == 304:
                record = self.cache.get(feed.url)
                logger.debug("Feed '%s' not modified; reusing cache", feed.url)
                return record.entries if record else []

            if response.status_code != 200:
                raise HTTPStatusError(feed, response.status_code, response.reason)

            try:
                entries = parse_feed(response.content, feed)
            except UnrecognizedFeedFormat as exc:
                raise FeedFetchError(feed, str(exc)) from exc

            self.cache.put(
                feed.url,
                CacheRecord(
                    etag=response.headers.get("ETag"),
                    last_modified=response.headers.get("Last-Modified"),
                    entries=entries,
                ),
            )

        logger.debug("Collected %d entries from feed '%s'", len(entries), feed.url)
        return entries
