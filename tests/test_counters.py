"""Unit tests for the memcached and Redis counter adapters."""

from __future__ import annotations

import hashlib
import threading
from unittest.mock import MagicMock, Mock, call

import pytest
from pymemcache.client.base import Client

from http_ratelimit.adapters.counters import MemcachedCounter, RedisCounter, counter_key
from http_ratelimit.adapters.counters.memcached import memcached_key


def test_counter_key_layout() -> None:
    assert counter_key("HTTP", "1.2.3.4", 1010) == "rack-ratelimit/HTTP/1.2.3.4/1010"


def test_counter_key_truncates_timestamp_to_integer() -> None:
    assert counter_key("API", "alice", 1010.0) == "rack-ratelimit/API/alice/1010"


class TestMemcachedCounter:
    """Increment-or-create protocol against an increment-capable cache."""

    def test_first_increment_creates_key_with_expiry(self, memcache) -> None:
        counter = MemcachedCounter(memcache, "HTTP", 10)

        assert counter.increment("a", 1010) == 1

        key = "rack-ratelimit/HTTP/a/1010"
        assert memcache.values[key] == 1
        assert memcache.expiries[key] == 10
        assert memcache.calls == [("incr", key), ("add", key)]

    def test_subsequent_increments_use_incr_only(self, memcache) -> None:
        counter = MemcachedCounter(memcache, "HTTP", 10)

        assert [counter.increment("a", 1010) for _ in range(3)] == [1, 2, 3]
        assert memcache.calls[-1] == ("incr", "rack-ratelimit/HTTP/a/1010")
        assert len(memcache.calls) == 4

    def test_windows_and_classifications_are_independent(self, memcache) -> None:
        counter = MemcachedCounter(memcache, "HTTP", 10)

        counter.increment("a", 1010)
        counter.increment("a", 1010)

        assert counter.increment("b", 1010) == 1
        assert counter.increment("a", 1020) == 1

    def test_limiter_names_are_independent(self, memcache) -> None:
        burst = MemcachedCounter(memcache, "burst", 10)
        hourly = MemcachedCounter(memcache, "hourly", 10)

        burst.increment("a", 1010)

        assert hourly.increment("a", 1010) == 1

    def test_lost_add_race_falls_back_to_incr(self) -> None:
        cache = Mock()
        cache.incr.side_effect = [None, 2]
        cache.add.return_value = False
        counter = MemcachedCounter(cache, "HTTP", 10)

        assert counter.increment("a", 1010) == 2

        key = "rack-ratelimit/HTTP/a/1010"
        assert cache.incr.call_args_list == [call(key, 1), call(key, 1)]
        cache.add.assert_called_once_with(key, 1, expire=10, noreply=False)

    def test_concurrent_first_requests_never_lose_increments(self, memcache) -> None:
        counter = MemcachedCounter(memcache, "HTTP", 10)
        workers = 32
        barrier = threading.Barrier(workers)
        results: list[int] = []
        results_lock = threading.Lock()

        def hit() -> None:
            barrier.wait()
            count = counter.increment("a", 1010)
            with results_lock:
                results.append(count)

        threads = [threading.Thread(target=hit) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(results) == list(range(1, workers + 1))
        assert memcache.values["rack-ratelimit/HTTP/a/1010"] == workers

    def test_store_errors_propagate(self) -> None:
        cache = Mock()
        cache.incr.side_effect = ConnectionRefusedError("memcached down")
        counter = MemcachedCounter(cache, "HTTP", 10)

        with pytest.raises(ConnectionRefusedError):
            counter.increment("a", 1010)

    def test_ordinary_keys_keep_shared_layout(self) -> None:
        assert memcached_key("HTTP", "ip:10.0.0.1", 1010) == "rack-ratelimit/HTTP/ip:10.0.0.1/1010"

    @pytest.mark.parametrize(
        "classification",
        ["t" * 300, "api_key:Bearer abc", "tab\tseparated", "line\nbreak", "café"],
    )
    def test_illegal_classifications_are_digested(self, memcache, classification) -> None:
        counter = MemcachedCounter(memcache, "HTTP", 10)

        assert [counter.increment(classification, 1010) for _ in range(2)] == [1, 2]

        digest = hashlib.sha256(classification.encode("utf-8")).hexdigest()
        key = f"rack-ratelimit/HTTP/{digest}/1010"
        assert list(memcache.values) == [key]
        assert len(key) <= 250

    def test_digested_classifications_stay_independent(self, memcache) -> None:
        counter = MemcachedCounter(memcache, "HTTP", 10)

        counter.increment("api_key:Bearer abc", 1010)

        assert counter.increment("api_key:Bearer abd", 1010) == 1
        assert counter.increment("api_key:Bearer abc", 1020) == 1

    @pytest.mark.parametrize("classification", ["t" * 300, "api_key:Bearer abc"])
    def test_keys_pass_pymemcache_validation(self, classification) -> None:
        # Nothing listens on port 1: a legal key gets as far as the socket.
        client = Client(("127.0.0.1", 1), connect_timeout=1, timeout=1)
        counter = MemcachedCounter(client, "HTTP", 10)

        with pytest.raises(OSError):
            counter.increment(classification, 1010)


class TestRedisCounter:
    """Transactional INCR + EXPIRE against Redis."""

    def test_counts_per_window(self, redis_client) -> None:
        counter = RedisCounter(redis_client, "HTTP", 10)

        assert [counter.increment("a", 1010) for _ in range(3)] == [1, 2, 3]
        assert int(redis_client.get("rack-ratelimit/HTTP/a/1010")) == 3

    def test_sets_expiry_to_period(self, redis_client) -> None:
        counter = RedisCounter(redis_client, "HTTP", 10)

        counter.increment("a", 1010)

        ttl = redis_client.ttl("rack-ratelimit/HTTP/a/1010")
        assert 0 < ttl <= 10

    def test_classifications_are_independent(self, redis_client) -> None:
        counter = RedisCounter(redis_client, "HTTP", 10)

        counter.increment("a", 1010)
        counter.increment("a", 1010)

        assert counter.increment("b", 1010) == 1
        assert counter.increment("a", 1020) == 1

    def test_uses_a_transaction(self) -> None:
        redis = MagicMock()
        pipe = redis.pipeline.return_value.__enter__.return_value
        pipe.execute.return_value = [7, True]
        counter = RedisCounter(redis, "HTTP", 10)

        assert counter.increment("a", 1010) == 7

        redis.pipeline.assert_called_once_with(transaction=True)
        pipe.incr.assert_called_once_with("rack-ratelimit/HTTP/a/1010")
        pipe.expire.assert_called_once_with("rack-ratelimit/HTTP/a/1010", 10)

    def test_concurrent_first_requests_never_lose_increments(self, redis_client) -> None:
        counter = RedisCounter(redis_client, "HTTP", 10)
        workers = 32
        barrier = threading.Barrier(workers)
        results: list[int] = []
        results_lock = threading.Lock()

        def hit() -> None:
            barrier.wait()
            count = counter.increment("a", 1010)
            with results_lock:
                results.append(count)

        threads = [threading.Thread(target=hit) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(results) == list(range(1, workers + 1))
        assert int(redis_client.get("rack-ratelimit/HTTP/a/1010")) == workers
