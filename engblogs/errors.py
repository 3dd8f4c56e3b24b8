"""Exceptions raised by the fetch and parse pipeline."""

from __future__ import annotations

from typing import Optional

from .models import Feed


class EngBlogsError(Exception):
    """Base class for engblogs errors."""


class UnrecognizedFeedFormat(EngBlogsError):
    """Raised when a document matches none of the supported feed shapes."""


class FeedFetchError(EngBlogsError):
    """A single feed could not be fetched or parsed."""

    def __init__(self, feed: Feed, message: str) -> None:
        super().__init__(message)
        self.feed = feed
        self.message = message

    def __str__(self) -> str:
        return f"{self.feed.title} ({self.feed.url}): {self.message}"


class HTTPStatusError(FeedFetchError):
    """The server answered with a status other than 200 or 304."""

    def __init__(self, feed: Feed, status_code: int, reason: Optional[str] = None):
        message = f"HTTP {status_code}"
        if reason:
            message = f"{message} {reason}"
        super().__init__(feed, message)
        self.status_code = status_code
