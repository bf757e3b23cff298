"""Tests for the settings-driven application factory."""

from __future__ import annotations

import json
import logging
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from http_ratelimit.adapters.counters import RedisCounter
from http_ratelimit.core.app_factory import EXCEEDED_LOGGER_NAME, build_limiter, create_app
from http_ratelimit.core.config import LogSettings, RatelimitSettings, Settings
from http_ratelimit.core.errors import ConfigurationAppError


def make_settings(**overrides) -> Settings:
    values = {"max_requests": 1, "period_seconds": 86400, "classify_by": "ip"}
    values.update(overrides)
    return Settings(ratelimit=RatelimitSettings(**values), log=LogSettings(format="plain"))


@pytest.fixture
def counter(redis_client) -> RedisCounter:
    return RedisCounter(redis_client, "HTTP", 86400)


def test_health_is_exempt(counter) -> None:
    client = TestClient(create_app(make_settings(), counter=counter))

    for _ in range(3):
        response = client.get("/health")
        assert response.status_code == 200
        assert "X-Ratelimit" not in response.headers


def test_limits_route_is_limited(counter) -> None:
    client = TestClient(create_app(make_settings(), counter=counter))

    first = client.get("/v1/limits")
    assert first.status_code == 200
    assert first.json() == {
        "limiters": [{"name": "HTTP", "limit": 1, "period": 86400, "status": 429}]
    }
    assert json.loads(first.headers["X-Ratelimit"])["remaining"] == 1

    second = client.get("/v1/limits")
    assert second.status_code == 429
    assert second.headers["Retry-After"] == "86400"
    assert second.headers["X-Request-ID"]


def test_request_id_is_echoed(counter) -> None:
    client = TestClient(create_app(make_settings(), counter=counter))

    response = client.get("/health", headers={"X-Request-ID": "req-abc-123"})

    assert response.headers["X-Request-ID"] == "req-abc-123"
    assert response.headers["X-Request-Duration-ms"]


def test_disabled_limiter(counter) -> None:
    client = TestClient(create_app(make_settings(enabled=False), counter=counter))

    for _ in range(3):
        response = client.get("/v1/limits")
        assert response.status_code == 200
        assert response.json() == {"limiters": []}


def test_store_failure_returns_generic_500() -> None:
    counter = Mock()
    counter.increment.side_effect = ConnectionError("redis://secret@host unreachable")
    client = TestClient(create_app(make_settings(), counter=counter), raise_server_exceptions=False)

    response = client.get("/v1/limits")

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "internal_server_error"
    assert "secret" not in response.text


class TestBuildLimiter:
    def test_maps_settings(self, counter) -> None:
        limiter = build_limiter(
            RatelimitSettings(
                name="API",
                max_requests=7,
                period_seconds=30,
                status_code=503,
                error_message="busy",
            ),
            counter=counter,
        )

        assert limiter.describe() == {"name": "API", "limit": 7, "period": 30, "status": 503}
        assert limiter.error_message == "busy"
        assert limiter.counter is counter

    def test_keeps_falsy_custom_counter(self) -> None:
        class EmptyCounter:
            def __len__(self) -> int:
                return 0

            def increment(self, classification, timestamp) -> int:
                return 1

        counter = EmptyCounter()
        limiter = build_limiter(RatelimitSettings(backend="etcd"), counter=counter)

        assert limiter.counter is counter

    def test_exceeded_logger(self, counter) -> None:
        assert build_limiter(RatelimitSettings(), counter=counter).logger is logging.getLogger(
            EXCEEDED_LOGGER_NAME
        )
        assert build_limiter(RatelimitSettings(log_exceeded=False), counter=counter).logger is None

    def test_no_exempt_paths(self, counter) -> None:
        limiter = build_limiter(RatelimitSettings(exempt_paths=""), counter=counter)
        assert limiter.exceptions == ()

    def test_builds_counter_from_backend(self) -> None:
        limiter = build_limiter(RatelimitSettings(backend="redis"))
        assert isinstance(limiter.counter, RedisCounter)

    def test_unknown_classifier(self, counter) -> None:
        with pytest.raises(ConfigurationAppError):
            build_limiter(RatelimitSettings(classify_by="tenant"), counter=counter)
