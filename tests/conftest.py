import threading
from typing import Callable, Dict, List, Optional, Union

import pytest
import requests

from engblogs.models import Feed

_REASONS = {200: "OK", 304: "Not Modified", 404: "Not Found", 500: "Internal Server Error"}


def _make_response(
    status: int = 200,
    content: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = _REASONS.get(status, "")
    response._content = content
    response._content_consumed = True
    response.headers.update(headers or {})
    return response


class FakeSession:
    """Stands in for ``requests.Session``; answers from a URL table."""

    def __init__(
        self,
        routes: Dict[str, Union[requests.Response, Exception, Callable]],
    ) -> None:
        self.routes = routes
        self.calls: List[dict] = []
        self.closed = False
        self._lock = threading.Lock()

    def get(self, url, headers=None, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "headers": dict(headers or {}), "timeout": timeout})
        route = self.routes[url]
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route()
        return route

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


@pytest.fixture
def make_response():
    return _make_response


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def feed():
    return Feed(
        title="Example Blog",
        url="https://example.com/feed.xml",
        site_url="https://example.com/",
    )
