"""Fixed-window HTTP rate limiting for ASGI applications."""

from http_ratelimit.adapters.counters import AbstractCounter, MemcachedCounter, RedisCounter
from http_ratelimit.core.errors import ConfigurationAppError
from http_ratelimit.core.limiter import RateLimiter, RatelimitDecision
from http_ratelimit.core.middleware import RatelimitMiddleware

__all__ = [
    "AbstractCounter",
    "ConfigurationAppError",
    "MemcachedCounter",
    "RateLimiter",
    "RatelimitDecision",
    "RatelimitMiddleware",
    "RedisCounter",
]
