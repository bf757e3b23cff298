"""Ready-made gating predicates for common request scopes.

Example: limit only writes, except for the health check::

    limiter = RateLimiter(
        (50, 10),
        redis=client,
        exceptions=[method_is("GET", "HEAD"), path_startswith("/health")],
    )
"""

from __future__ import annotations

from collections.abc import Callable

from starlette.requests import Request

RequestPredicate = Callable[[Request], bool]


def method_is(*methods: str) -> RequestPredicate:
    """Match requests whose HTTP method is one of ``methods``."""
    wanted = {method.upper() for method in methods}

    def predicate(request: Request) -> bool:
        return request.method.upper() in wanted

    return predicate


def path_startswith(*prefixes: str) -> RequestPredicate:
    """Match requests whose URL path starts with any of ``prefixes``."""
    wanted = tuple(prefixes)

    def predicate(request: Request) -> bool:
        return request.url.path.startswith(wanted)

    return predicate


def header_present(name: str) -> RequestPredicate:
    """Match requests carrying a non-empty ``name`` header."""

    def predicate(request: Request) -> bool:
        return bool(request.headers.get(name))

    return predicate
