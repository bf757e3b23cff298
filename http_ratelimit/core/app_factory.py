"""Application factory for the rate limited HTTP service.

Centralizes app construction (logging, middleware, handlers, routers) so
tests can build isolated apps with their own settings and counters.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from http_ratelimit.adapters.counters.base import AbstractCounter
from http_ratelimit.adapters.counters.factory import create_counter
from http_ratelimit.api.routes import health_router, limits_router
from http_ratelimit.core.classifiers import get_classifier
from http_ratelimit.core.config import RatelimitSettings, Settings, settings
from http_ratelimit.core.exception_handlers import setup_exception_handlers
from http_ratelimit.core.limiter import RateLimiter
from http_ratelimit.core.logging import configure_logging
from http_ratelimit.core.middleware import RatelimitMiddleware, request_id_middleware
from http_ratelimit.core.predicates import path_startswith

EXCEEDED_LOGGER_NAME = "http_ratelimit.exceeded"


def build_limiter(
    ratelimit_settings: RatelimitSettings,
    *,
    counter: AbstractCounter | None = None,
) -> RateLimiter:
    """Build a ``RateLimiter`` from settings.

    Args:
        ratelimit_settings: Resolved ``RATELIMIT_*`` settings.
        counter: Optional counter overriding the configured backend.

    Raises:
        ConfigurationAppError: If the backend or classifier is unknown.
    """

    exempt = ratelimit_settings.exempt_path_prefixes
    return RateLimiter(
        (ratelimit_settings.max_requests, ratelimit_settings.period_seconds),
        counter=counter if counter is not None else create_counter(ratelimit_settings),
        name=ratelimit_settings.name,
        status=ratelimit_settings.status_code,
        exceptions=[path_startswith(*exempt)] if exempt else None,
        logger=logging.getLogger(EXCEEDED_LOGGER_NAME) if ratelimit_settings.log_exceeded else None,
        error_message=ratelimit_settings.error_message,
        classifier=get_classifier(ratelimit_settings.classify_by),
    )


def create_app(
    app_settings: Settings | None = None,
    *,
    counter: AbstractCounter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use instead of the global instance.
        counter: Optional counter for the settings-defined limiter.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="HTTP Ratelimit",
        description=(
            "Fixed-window request rate limiting backed by Redis or memcached. "
            "Responses carry an X-Ratelimit header describing each limit."
        ),
        version="0.1.0",
    )

    limiters: list[RateLimiter] = []
    if cfg.ratelimit.enabled:
        limiter = build_limiter(cfg.ratelimit, counter=counter)
        app.add_middleware(RatelimitMiddleware, limiter=limiter)
        limiters.append(limiter)
    app.state.limiters = limiters

    # Added last so it wraps the limiter and rejections carry a request id too
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    return app
