"""
Shared fixtures: a fake aiohttp session that records requests and replays canned bodies.
"""

import json
from collections import defaultdict, deque
from unittest.mock import AsyncMock
from urllib.parse import urlparse

import pytest

from coinbridge import registry
from coinbridge.utils import http


class FakeResponse:
    def __init__(self, status, body):
        self.status = status
        self._body = body

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Stand-in for aiohttp.ClientSession keyed by (METHOD, url path suffix)."""

    def __init__(self):
        self.closed = False
        self.calls = []
        self._routes = defaultdict(deque)

    def add(self, method, path, body, status=200):
        if not isinstance(body, str):
            body = json.dumps(body)
        self._routes[(method.upper(), path)].append((status, body))
        return self

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        path = urlparse(url).path
        for (m, suffix), queue in self._routes.items():
            if m == method.upper() and path.endswith(suffix) and queue:
                status, body = queue.popleft() if len(queue) > 1 else queue[0]
                return FakeResponse(status, body)
        raise AssertionError(f"unexpected request {method} {url}")

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def clean_registry():
    registry.clear()
    yield
    registry.clear()


@pytest.fixture
def fake_http(monkeypatch):
    session = FakeSession()
    monkeypatch.setattr(http, "_aiohttp_session", session)
    monkeypatch.setattr(http, "jitter_backoff", AsyncMock(return_value=0))
    monkeypatch.setattr(http, "_external_ip", "10.0.0.7")
    return session
