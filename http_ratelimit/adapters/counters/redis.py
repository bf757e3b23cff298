"""Redis-backed counter.

``INCR`` creates a missing key with value 1, so the creation race memcached
needs a protocol for does not exist here. ``INCR`` and ``EXPIRE`` run in one
``MULTI``/``EXEC`` transaction; the expiry is refreshed on every call, so a
key expires one period after the window's last increment.
"""

from __future__ import annotations

from redis import Redis

from http_ratelimit.adapters.counters.base import AbstractCounter, counter_key


class RedisCounter(AbstractCounter):
    """Fixed-window counter stored in Redis with a TTL of one period."""

    def __init__(self, redis: Redis, name: str, period: int) -> None:
        self._redis = redis
        self._name = name
        self._period = period

    def increment(self, classification: str, timestamp: int) -> int:
        key = counter_key(self._name, classification, timestamp)

        with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, self._period)
            count, _ = pipe.execute()

        return int(count)
