"""Configuration loading for engblogs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set
from xml.etree import ElementTree as ET

from .fetcher import DEFAULT_USER_AGENT
from .grouping import DEFAULT_MAX_DAYS
from .models import Feed

logger = logging.getLogger(__name__)


@dataclass
class HTTPConfig:
    concurrency: int = 30
    connect_timeout: float = 10.0
    read_timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    enabled: bool = False
    connection_string: Optional[str] = None


@dataclass
class AppConfig:
    feeds_file: str
    cache_file: str = "cache.json"
    output_dir: str = "public"
    max_days: int = DEFAULT_MAX_DAYS
    cname: Optional[str] = None
    http: HTTPConfig = field(default_factory=HTTPConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def parse_feeds_config(path: str) -> List[Feed]:
    """Parse the OPML subscription file into unique feeds, in document order."""
    logger.info("Loading feed subscriptions from %s", path)
    tree = ET.parse(path)
    root = tree.getroot()
    body = root.find("body")
    if body is None:
        raise ValueError(f"{path} is missing the <body> section.")

    feeds: List[Feed] = []
    seen: Set[str] = set()

    def walk(outline: ET.Element) -> None:
        feed_url = (outline.attrib.get("xmlUrl") or "").strip()
        if feed_url:
            if feed_url in seen:
                logger.debug("Skipping duplicate subscription %s", feed_url)
            else:
                seen.add(feed_url)
                title = outline.attrib.get("title") or outline.attrib.get("text")
                feeds.append(
                    Feed(
                        title=title or feed_url,
                        url=feed_url,
                        site_url=outline.attrib.get("htmlUrl", ""),
                    )
                )
        for child in outline.findall("outline"):
            walk(child)

    for outline in body.findall("outline"):
        walk(outline)

    logger.info("Loaded %d unique feeds from subscriptions", len(feeds))
    return feeds


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _positive(value: str, name: str, cast=int):
    try:
        number = cast(value)
    except ValueError:
        raise ValueError(f"<{name}> must be a number, got {value!r}")
    if number <= 0:
        raise ValueError(f"<{name}> must be positive.")
    return number


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    tree = ET.parse(config_path)
    root = tree.getroot()

    feeds_node = root.find("feeds")
    if feeds_node is None or not feeds_node.text:
        raise ValueError("Config missing <feeds> path")
    config = AppConfig(feeds_file=_resolve_path(config_path, feeds_node.text.strip()))

    config.cache_file = _resolve_path(
        config_path, (root.findtext("cache-file") or "cache.json").strip()
    )
    config.output_dir = _resolve_path(
        config_path, (root.findtext("output-dir") or "public").strip()
    )
    config.max_days = _positive(
        root.findtext("max-days", str(DEFAULT_MAX_DAYS)), "max-days"
    )
    cname = root.findtext("cname")
    config.cname = cname.strip() if cname and cname.strip() else None

    # HTTP
    http_node = root.find("http")
    if http_node is not None:
        config.http.concurrency = _positive(
            http_node.findtext("concurrency", "30"), "concurrency"
        )
        config.http.connect_timeout = _positive(
            http_node.findtext("connect-timeout", "10"), "connect-timeout", float
        )
        config.http.read_timeout = _positive(
            http_node.findtext("read-timeout", "15"), "read-timeout", float
        )
        user_agent = http_node.findtext("user-agent")
        if user_agent and user_agent.strip():
            config.http.user_agent = user_agent.strip()

    # Logging
    log_node = root.find("logging")
    if log_node is not None:
        config.logging.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            config.logging.file = _resolve_path(config_path, log_file)

    # Database
    db_node = root.find("database")
    if db_node is not None:
        config.database.enabled = (
            db_node.findtext("enabled", "false").lower() == "true"
        )
        config.database.connection_string = db_node.findtext("connection-string")

    return config
