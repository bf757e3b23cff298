"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING so no .env file is loaded and pins the settings the
app factory reads at import time.
"""

import os
import threading
from unittest.mock import Mock

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("RATELIMIT_BACKEND", "redis")
os.environ.setdefault("RATELIMIT_REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("LOG_FORMAT", "plain")

import fakeredis
import pytest
from starlette.requests import Request


class FakeMemcacheClient:
    """Thread-safe stand-in for a memcached client.

    Each call is atomic on its own, like memcached; nothing makes an
    ``incr`` followed by an ``add`` atomic, so callers can race.
    """

    def __init__(self) -> None:
        self.values: dict[str, int] = {}
        self.expiries: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def incr(self, key, value, noreply=False):
        with self._lock:
            self.calls.append(("incr", key))
            if key not in self.values:
                return None
            self.values[key] += value
            return self.values[key]

    def add(self, key, value, expire=0, noreply=None):
        with self._lock:
            self.calls.append(("add", key))
            if key in self.values:
                return False
            self.values[key] = int(value)
            self.expiries[key] = expire
            return True


def make_request(
    path: str = "/",
    *,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    client: tuple[str, int] | None = ("10.0.0.1", 5000),
) -> Request:
    """Build a Starlette request from a minimal ASGI scope."""
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": raw_headers,
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def memcache() -> FakeMemcacheClient:
    return FakeMemcacheClient()


@pytest.fixture
def redis_client() -> fakeredis.FakeStrictRedis:
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client


@pytest.fixture
def clock() -> Mock:
    """Frozen epoch clock, 5.5 seconds into the window ending at 1010."""
    return Mock(return_value=1004.5)
