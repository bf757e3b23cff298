"""Fixed-window rate limiter.

* Run multiple rate limiters in a single app.
* Scope each limiter to certain requests: API, files, GET vs POST, etc.
* Classify requests by IP, subdomain, API token, tenant, etc.
* Pick a window per limiter to cap bursts vs hourly or daily traffic:
  100 requests per 10 sec, 500 per minute, 10000 per hour.

Each request that is limited costs one counter store round trip::

    timestamp = period * ceil(now / period)
    count = counter.increment(classification, timestamp)

The limiter keeps no state between requests; counts live in the shared store
only, so every process pointed at the same store enforces the same limit.

Example, limit bursts of writes per client IP and return 503::

    limiter = RateLimiter(
        (50, 10),
        name="POST",
        exceptions=method_is("GET"),
        status=503,
        cache=pymemcache.Client(("localhost", 11211)),
        logger=logging.getLogger("ratelimit"),
        classifier=client_ip,
    )
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from http_ratelimit.adapters.counters.base import AbstractCounter
from http_ratelimit.adapters.counters.memcached import MemcachedCounter
from http_ratelimit.adapters.counters.redis import RedisCounter
from http_ratelimit.core.classifiers import global_bucket
from http_ratelimit.core.errors import ConfigurationAppError
from http_ratelimit.core.gating import Gate, Predicate
from http_ratelimit.core.window import format_until, window_end

RATELIMIT_HEADER = "X-Ratelimit"


@dataclass(frozen=True)
class RatelimitDecision:
    """Outcome of counting one request.

    Attributes:
        name: Limiter name.
        classification: Key the request was counted under.
        limit: Maximum requests per window.
        period: Window length in seconds.
        remaining: ``limit - count + 1``; zero or negative once exceeded.
        until: ISO-8601 UTC end of the current window.
    """

    name: str
    classification: str
    limit: int
    period: int
    remaining: int
    until: str

    @property
    def exceeded(self) -> bool:
        return self.remaining <= 0

    @property
    def header_value(self) -> str:
        """Compact JSON descriptor sent in the ``X-Ratelimit`` header."""
        return json.dumps(
            {
                "name": self.name,
                "period": self.period,
                "limit": self.limit,
                "remaining": self.remaining,
                "until": self.until,
            },
            separators=(",", ":"),
        )

    @property
    def rejection_headers(self) -> dict[str, str]:
        return {RATELIMIT_HEADER: self.header_value, "Retry-After": str(self.period)}


def _validate_rate(rate: Any) -> tuple[int, int]:
    try:
        max_requests, period = rate
    except (TypeError, ValueError):
        raise ConfigurationAppError(
            code="ratelimit_invalid_rate",
            message="rate must be a (max requests, period in seconds) pair",
            details={"setting": "rate", "actual_value": repr(rate)},
        ) from None

    for label, value in (("max requests", max_requests), ("period", period)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigurationAppError(
                code="ratelimit_invalid_rate",
                message=f"rate {label} must be a positive integer",
                details={"setting": "rate", "actual_value": repr(value)},
            )
    return max_requests, period


class RateLimiter:
    """Classifies requests and counts them per fixed time window.

    Args:
        rate: ``(max requests, period in seconds)``, e.g. ``(500, 300)``.
        counter: Custom counter; must have ``increment(classification, timestamp)``
            returning the count after incrementing.
        cache: A pymemcache client; selects ``MemcachedCounter``.
        redis: A redis-py client; selects ``RedisCounter``.
        name: Limiter name, used as key namespace and in messages.
        status: HTTP status code for rejected requests.
        conditions: Predicates that must all be true to limit a request.
        exceptions: Predicates any of which excludes a request from limiting.
        logger: Anything with ``info(message)``; receives one message for the
            first request that exceeds the limit in a window.
        error_message: Response body for rejected requests.
        classifier: ``(request) -> str | None``; ``None`` skips limiting.
            Defaults to one bucket for all requests.
        clock: Epoch time source.

    Raises:
        ConfigurationAppError: If ``rate`` is invalid or no usable counter
            backend is given.
    """

    def __init__(
        self,
        rate: Sequence[int],
        *,
        counter: Any = None,
        cache: Any = None,
        redis: Any = None,
        name: str = "HTTP",
        status: int = 429,
        conditions: Predicate | Iterable[Predicate] | None = None,
        exceptions: Predicate | Iterable[Predicate] | None = None,
        logger: Any = None,
        error_message: str | None = None,
        classifier: Callable[[Any], "str | None"] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self.max, self.period = _validate_rate(rate)
        self.status = status
        self.counter = self._select_counter(counter, cache, redis)
        self.logger = logger
        self.error_message = error_message or (
            f"{name} rate limit exceeded. Please wait {self.period} seconds "
            "then retry your request."
        )
        self._classifier = classifier or global_bucket
        self._clock = clock
        self._gate = Gate(conditions=conditions, exceptions=exceptions)

    def _select_counter(self, counter: Any, cache: Any, redis: Any) -> AbstractCounter:
        if counter is not None:
            if not callable(getattr(counter, "increment", None)):
                raise ConfigurationAppError(
                    code="ratelimit_invalid_counter",
                    message="Counter must have an increment(classification, timestamp) method",
                    details={"setting": "counter", "actual_value": type(counter).__name__},
                )
            return counter
        if cache is not None:
            return MemcachedCounter(cache, self.name, self.period)
        if redis is not None:
            return RedisCounter(redis, self.name, self.period)
        raise ConfigurationAppError(
            code="ratelimit_missing_counter",
            message="cache, redis, or counter is required",
        )

    @property
    def conditions(self) -> tuple[Predicate, ...]:
        return self._gate.conditions

    @property
    def exceptions(self) -> tuple[Predicate, ...]:
        return self._gate.exceptions

    def condition(self, predicate: Predicate) -> Predicate:
        """Add a predicate that must be true for the limit to apply.

        Returns the predicate, so it can be used as a decorator::

            @limiter.condition
            def authenticated(request):
                return "authorization" in request.headers
        """
        return self._gate.add_condition(predicate)

    def exception(self, predicate: Predicate) -> Predicate:
        """Add a predicate that excludes matching requests from the limit."""
        return self._gate.add_exception(predicate)

    def apply_rate_limit(self, request: Any) -> bool:
        """Limit the request if no exception applies and all conditions are met."""
        return self._gate.applies(request)

    def classify(self, request: Any) -> str | None:
        """Return the request's classification; override to specialize."""
        return self._classifier(request)

    def evaluate(self, request: Any) -> RatelimitDecision | None:
        """Count the request against its window.

        Returns None when the request is not subject to this limiter, in which
        case the counter store is not touched. Counter store errors propagate.
        """
        if not self.apply_rate_limit(request):
            return None

        classification = self.classify(request)
        if classification is None:
            return None

        timestamp = window_end(self._clock(), self.period)
        until = format_until(timestamp)

        count = self.counter.increment(classification, timestamp)
        remaining = self.max - count + 1

        # Only the request that crosses the limit is logged, not the ones
        # rejected after it in the same window.
        if self.logger is not None and remaining == 0:
            self.logger.info(
                "%s: %s exceeded %d request limit for %s"
                % (self.name, classification, self.max, until)
            )

        return RatelimitDecision(
            name=self.name,
            classification=classification,
            limit=self.max,
            period=self.period,
            remaining=remaining,
            until=until,
        )

    def describe(self) -> dict[str, Any]:
        """Return the limiter's static configuration."""
        return {
            "name": self.name,
            "limit": self.max,
            "period": self.period,
            "status": self.status,
        }
