"""Memcached-backed counter.

Memcached can increment an existing key atomically and create a key only if
it is absent, but it cannot do both in one operation. The first request of a
window therefore goes through a three step protocol:

1. ``incr`` the key; if it exists we're done.
2. ``add`` the key with value 1 and the window expiry; if we created it the
   count is 1.
3. Otherwise another caller created it between steps 1 and 2: ``incr`` again.

No increment is lost and the key is never reset to 1 once it exists.

Memcached keys are limited to 250 printable ASCII bytes without whitespace.
Classifications that would break that rule (long bearer tokens, values with
spaces) are replaced in the key by their SHA-256 digest; all other keys keep
the shared ``rack-ratelimit/<name>/<classification>/<timestamp>`` layout.
"""

from __future__ import annotations

import hashlib
import logging

from pymemcache.client.base import Client

from http_ratelimit.adapters.counters.base import AbstractCounter, counter_key

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 250


def _is_memcached_safe(key: str) -> bool:
    return len(key) <= MAX_KEY_LENGTH and all(33 <= ord(ch) <= 126 for ch in key)


def memcached_key(name: str, classification: str, timestamp: int) -> str:
    """Build a counter key memcached accepts.

    Args:
        name: Limiter name.
        classification: Partition key of the request.
        timestamp: Epoch seconds marking the end of the window.

    Returns:
        str: ``counter_key(...)`` unchanged when it is a legal memcached key,
            otherwise the same layout with the classification digested.
    """

    key = counter_key(name, classification, timestamp)
    if _is_memcached_safe(key):
        return key

    digest = hashlib.sha256(str(classification).encode("utf-8")).hexdigest()
    return counter_key(name, digest, timestamp)


class MemcachedCounter(AbstractCounter):
    """Fixed-window counter stored in memcached with a TTL of one period.

    Works with ``pymemcache`` clients (``Client``, ``HashClient``,
    ``PooledClient``) or anything exposing the same ``incr``/``add`` calls.
    """

    def __init__(self, cache: Client, name: str, period: int) -> None:
        self._cache = cache
        self._name = name
        self._period = period

    def increment(self, classification: str, timestamp: int) -> int:
        key = memcached_key(self._name, classification, timestamp)

        count = self._cache.incr(key, 1)
        if count is not None:
            return int(count)

        if self._cache.add(key, 1, expire=self._period, noreply=False):
            return 1

        # Lost the creation race; the key exists now.
        logger.debug("ratelimit.counter.add_race", extra={"limiter": self._name})
        return int(self._cache.incr(key, 1))
