"""Feed document parsing for RSS, Atom, bare-channel and RDF feeds."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

from lxml import etree

from .dates import parse_time
from .errors import UnrecognizedFeedFormat
from .models import Entry, Feed

logger = logging.getLogger(__name__)


@dataclass
class ParsedFeed:
    """Entries decoded from one document plus what was dropped on the way."""

    shape: str
    entries: List[Entry] = field(default_factory=list)
    skipped: int = 0
    undated: int = 0


def _local(tag) -> str:
    # Comments and processing instructions carry a callable tag.
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _children(element, name: str) -> List[etree._Element]:
    return [child for child in element if _local(child.tag) == name]


def _first(element, name: str) -> Optional[etree._Element]:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _text(element, name: str) -> str:
    """Return the trimmed text of the first non-empty child called ``name``."""
    for child in _children(element, name):
        value = "".join(child.itertext()).strip()
        if value:
            return value
    return ""


def _parse_root(data: bytes):
    strict = etree.XMLParser(recover=False, resolve_entities=False, no_network=True)
    try:
        return etree.fromstring(data, parser=strict)
    except (etree.XMLSyntaxError, ValueError):
        logger.debug("Strict XML parse failed; retrying in recover mode")

    lenient = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(data, parser=lenient)
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise UnrecognizedFeedFormat(f"unrecognized feed format: {exc}") from exc
    if root is None:
        raise UnrecognizedFeedFormat("unrecognized feed format: no XML content")
    return root


def _rss_items(root) -> List[etree._Element]:
    if _local(root.tag) != "rss":
        return []
    channel = _first(root, "channel")
    if channel is None:
        return []
    return _children(channel, "item")


def _atom_entries(root) -> List[etree._Element]:
    if _local(root.tag) != "feed":
        return []
    return _children(root, "entry")


def _bare_channel_items(root) -> List[etree._Element]:
    if _local(root.tag) != "channel":
        return []
    return _children(root, "item")


def _rdf_items(root) -> List[etree._Element]:
    if _local(root.tag) != "RDF":
        return []
    return _children(root, "item")


def _rss_link_and_date(item) -> Tuple[str, str]:
    link = _text(item, "link") or _text(item, "guid")
    # RSS 1.0 and RDF feeds date items with dc:date instead of pubDate.
    date = _text(item, "pubDate") or _text(item, "date")
    return link, date


def _atom_link_and_date(entry) -> Tuple[str, str]:
    links = _children(entry, "link")
    link = ""
    for candidate in links:
        if candidate.get("rel", "") in ("alternate", ""):
            link = (candidate.get("href") or "").strip()
            break
    if not link and links:
        link = (links[0].get("href") or "").strip()
    if not link:
        link = _text(entry, "id")
    date = _text(entry, "published") or _text(entry, "updated")
    return link, date


_Shape = Tuple[str, Callable, Callable[..., Tuple[str, str]]]

# Strict shapes first; the lenient ones only apply when these find nothing.
_SHAPES: Tuple[_Shape, ...] = (
    ("rss", _rss_items, _rss_link_and_date),
    ("atom", _atom_entries, _atom_link_and_date),
    ("channel", _bare_channel_items, _rss_link_and_date),
    ("rdf", _rdf_items, _rss_link_and_date),
)


def _build_entries(
    shape: str,
    items: Iterable[etree._Element],
    extract: Callable[..., Tuple[str, str]],
    feed: Feed,
) -> ParsedFeed:
    result = ParsedFeed(shape=shape)
    for item in items:
        link, raw_date = extract(item)
        if not link:
            result.skipped += 1
            logger.debug("Skipping %s item without a link in feed '%s'", shape, feed.url)
            continue

        published = parse_time(raw_date)
        if published is None:
            result.undated += 1

        result.entries.append(
            Entry(
                source_name=feed.title,
                source_url=feed.site_url,
                title=_text(item, "title"),
                url=link,
                published=published,
            )
        )
    return result


def parse_feed_document(data: bytes, feed: Feed) -> ParsedFeed:
    """Decode ``data`` with the first feed shape that yields any items."""
    root = _parse_root(data)

    for shape, find_items, extract in _SHAPES:
        items = find_items(root)
        if not items:
            continue
        parsed = _build_entries(shape, items, extract, feed)
        logger.debug(
            "Parsed feed '%s' as %s: %d entries, %d skipped, %d undated",
            feed.url,
            shape,
            len(parsed.entries),
            parsed.skipped,
            parsed.undated,
        )
        return parsed

    raise UnrecognizedFeedFormat("unrecognized feed format")


def parse_feed(data: bytes, feed: Feed) -> List[Entry]:
    """Return the normalized entries contained in a raw feed document."""
    return parse_feed_document(data, feed).entries
