"""Factory for building counter store adapters from settings."""

from __future__ import annotations

from pymemcache.client.base import Client
from redis import Redis

from http_ratelimit.adapters.counters.base import AbstractCounter
from http_ratelimit.adapters.counters.memcached import MemcachedCounter
from http_ratelimit.adapters.counters.redis import RedisCounter
from http_ratelimit.core.config import RatelimitSettings
from http_ratelimit.core.errors import ConfigurationAppError


def _parse_server(server: str) -> tuple[str, int]:
    host, sep, port = server.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ConfigurationAppError(
            code="ratelimit_invalid_memcached_server",
            message=f"Invalid memcached server '{server}', expected host:port",
            details={"setting": "RATELIMIT_MEMCACHED_SERVER", "actual_value": server},
        )
    return host, int(port)


def create_counter(ratelimit_settings: RatelimitSettings) -> AbstractCounter:
    """Instantiate the counter backend selected by ``RATELIMIT_BACKEND``.

    Client connections are lazy in both redis-py and pymemcache, so building
    a counter does not touch the network.

    Returns:
        AbstractCounter: Configured counter for the settings' limiter name and period.

    Raises:
        ConfigurationAppError: If the backend is unknown or its address is invalid.
    """
    backend = ratelimit_settings.backend.lower()
    name = ratelimit_settings.name
    period = ratelimit_settings.period_seconds

    if backend == "redis":
        return RedisCounter(Redis.from_url(ratelimit_settings.redis_url), name, period)

    if backend == "memcached":
        client = Client(_parse_server(ratelimit_settings.memcached_server))
        return MemcachedCounter(client, name, period)

    raise ConfigurationAppError(
        code="ratelimit_unknown_backend",
        message=(
            f"Unknown rate limit backend: '{backend}'. Supported backends: redis, memcached"
        ),
        details={"setting": "RATELIMIT_BACKEND", "actual_value": backend},
    )
