"""Counter store adapters.

A counter atomically increments the request count for one classification in
one time window and returns the post-increment value. Two shared-store
backends are provided (memcached and Redis); any object with a compatible
``increment`` method can be injected instead.
"""

from http_ratelimit.adapters.counters.base import AbstractCounter, counter_key
from http_ratelimit.adapters.counters.memcached import MemcachedCounter
from http_ratelimit.adapters.counters.redis import RedisCounter

__all__ = ["AbstractCounter", "MemcachedCounter", "RedisCounter", "counter_key"]
