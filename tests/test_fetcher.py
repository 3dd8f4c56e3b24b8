import pytest
import requests

import engblogs.fetcher as fetcher_module
from engblogs.cache import FeedCache
from engblogs.errors import FeedFetchError, HTTPStatusError
from engblogs.fetcher import DEFAULT_USER_AGENT, FeedFetcher, build_session
from engblogs.models import CacheRecord, Entry

RSS = b"""<rss><channel><item>
<title>Fresh</title><link>https://example.com/fresh</link>
<pubDate>Tue, 02 Jan 2024 10:30:00 +0000</pubDate>
</item></channel></rss>"""


def _cached_record() -> CacheRecord:
    return CacheRecord(
        etag='"v1"',
        last_modified="Mon, 01 Jan 2024 00:00:00 GMT",
        entries=[
            Entry(
                source_name="Example Blog",
                source_url="https://example.com/",
                title="Cached",
                url="https://example.com/cached",
            )
        ],
    )


def test_successful_fetch_parses_and_updates_cache(feed, fake_session, make_response):
    session = fake_session(
        {
            feed.url: make_response(
                200,
                RSS,
                {"ETag": '"v2"', "Last-Modified": "Tue, 02 Jan 2024 10:30:00 GMT"},
            )
        }
    )
    cache = FeedCache()
    fetcher = FeedFetcher(cache, session=session, timeout=(1.0, 2.0))

    entries = fetcher.fetch(feed)

    assert [entry.url for entry in entries] == ["https://example.com/fresh"]
    record = cache.get(feed.url)
    assert record.etag == '"v2"'
    assert record.last_modified == "Tue, 02 Jan 2024 10:30:00 GMT"
    assert record.entries == entries

    call = session.calls[0]
    assert call["headers"] == {"User-Agent": DEFAULT_USER_AGENT}
    assert call["timeout"] == (1.0, 2.0)


def test_cached_validators_are_sent(feed, fake_session, make_response):
    session = fake_session({feed.url: make_response(304)})
    cache = FeedCache({feed.url: _cached_record()})

    FeedFetcher(cache, session=session, user_agent="test-agent").fetch(feed)

    headers = session.calls[0]["headers"]
    assert headers["User-Agent"] == "test-agent"
    assert headers["If-None-Match"] == '"v1"'
    assert headers["If-Modified-Since"] == "Mon, 01 Jan 2024 00:00:00 GMT"


def test_not_modified_reuses_cached_entries_without_parsing(
    feed, fake_session, make_response, monkeypatch
):
    def fail_parse(*args, **kwargs):
        raise AssertionError("parse_feed must not run on 304")

    monkeypatch.setattr(fetcher_module, "parse_feed", fail_parse)
    record = _cached_record()
    cache = FeedCache({feed.url: record})
    session = fake_session({feed.url: make_response(304)})

    entries = FeedFetcher(cache, session=session).fetch(feed)

    assert entries == record.entries
    assert cache.get(feed.url) is record


def test_unexpected_status_is_an_error(feed, fake_session, make_response):
    cache = FeedCache({feed.url: _cached_record()})
    session = fake_session({feed.url: make_response(404)})

    with pytest.raises(HTTPStatusError) as excinfo:
        FeedFetcher(cache, session=session).fetch(feed)

    assert excinfo.value.status_code == 404
    assert excinfo.value.feed == feed
    assert "HTTP 404" in str(excinfo.value)
    assert cache.get(feed.url) == _cached_record()


def test_transport_error_keeps_feed_and_cache(feed, fake_session):
    cache = FeedCache({feed.url: _cached_record()})
    session = fake_session({feed.url: requests.ConnectTimeout("connect timed out")})

    with pytest.raises(FeedFetchError) as excinfo:
        FeedFetcher(cache, session=session).fetch(feed)

    assert excinfo.value.feed == feed
    assert "connect timed out" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, requests.ConnectTimeout)
    assert cache.get(feed.url) == _cached_record()


def test_unrecognized_body_fails_and_leaves_cache(feed, fake_session, make_response):
    cache = FeedCache({feed.url: _cached_record()})
    session = fake_session({feed.url: make_response(200, b"<html></html>", {"ETag": '"new"'})})

    with pytest.raises(FeedFetchError, match="unrecognized feed format"):
        FeedFetcher(cache, session=session).fetch(feed)

    assert cache.get(feed.url).etag == '"v1"'


def test_build_session_disables_retries():
    session = build_session(pool_size=5)

    adapter = session.get_adapter("https://example.com/feed")

    assert adapter.max_retries.total == 0
