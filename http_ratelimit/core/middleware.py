"""HTTP middleware: rate limiting and request ID propagation.

``RatelimitMiddleware`` puts a ``RateLimiter`` in front of an ASGI app:

- Requests the limiter does not apply to pass through untouched.
- Requests over the limit are answered directly with the configured status,
  ``X-Ratelimit`` and ``Retry-After`` headers and the error message body.
- Requests within the limit are forwarded; the limiter's JSON descriptor is
  appended to the response's ``X-Ratelimit`` header.

Stack several instances to enforce independent limits::

    app.add_middleware(RatelimitMiddleware, rate=(10, 1), name="burst", redis=client)
    app.add_middleware(RatelimitMiddleware, rate=(1000, 3600), name="hourly", redis=client)

The inner limiter's header value comes first, each further limiter's value is
joined on a new line.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp

from http_ratelimit.core.config import settings
from http_ratelimit.core.limiter import RATELIMIT_HEADER, RateLimiter
from http_ratelimit.core.logging import clear_request_id, hash_classification, set_request_id

logger = logging.getLogger(__name__)


class RatelimitMiddleware(BaseHTTPMiddleware):
    """Enforce a ``RateLimiter`` on every request reaching this middleware.

    Args:
        app: Downstream ASGI application.
        limiter: A configured limiter. When omitted, ``options`` are passed to
            ``RateLimiter`` to build one.
        **options: ``RateLimiter`` arguments (``rate``, ``redis``, ``name``, ...).
    """

    def __init__(self, app: ASGIApp, limiter: RateLimiter | None = None, **options: Any) -> None:
        super().__init__(app)
        if limiter is None:
            limiter = RateLimiter(options.pop("rate", None), **options)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # Counter clients block on network I/O; keep them off the event loop.
        decision = await run_in_threadpool(self.limiter.evaluate, request)
        if decision is None:
            return await call_next(request)

        log_fields = {
            "limiter": decision.name,
            "classification_hash": hash_classification(decision.classification),
            "limit": decision.limit,
            "remaining": decision.remaining,
            "window_s": decision.period,
        }

        if decision.exceeded:
            logger.warning("ratelimit.rejected", extra=log_fields)
            return PlainTextResponse(
                self.limiter.error_message,
                status_code=self.limiter.status,
                headers=decision.rejection_headers,
            )

        logger.debug("ratelimit.accepted", extra=log_fields)
        response = await call_next(request)

        existing = response.headers.get(RATELIMIT_HEADER)
        response.headers[RATELIMIT_HEADER] = "\n".join(
            value for value in (existing, decision.header_value) if value is not None
        )
        return response


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    Uses the incoming ``X-Request-ID`` header (name configurable through
    ``LOG_REQUEST_ID_HEADER``) or a new UUID, stores it in contextvars for log
    correlation and echoes it, with the request duration, in the response.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
