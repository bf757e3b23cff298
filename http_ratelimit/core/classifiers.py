"""Request classifiers.

A classifier maps a request to the key its requests are counted under. A
``None`` result exempts the request from rate limiting entirely.

Strategies:
- global: every request shares one bucket.
- ip: one bucket per client address.
- api_key: one bucket per API key; falls back to client IP when the key
  is missing (e.g., auth disabled).
"""

from __future__ import annotations

from collections.abc import Callable

from starlette.requests import Request

from http_ratelimit.core.errors import ConfigurationAppError

Classifier = Callable[[Request], "str | None"]

GLOBAL_CLASSIFICATION = "request"


def global_bucket(request: Request) -> str:
    """Classify every request identically."""
    return GLOBAL_CLASSIFICATION


def client_ip(request: Request) -> str | None:
    """Classify by client address; requests without one are not limited."""
    return request.client.host if request.client else None


def api_key_or_ip(request: Request, header: str = "X-API-Key") -> str:
    """Build the classification from the API key header or the client IP.

    Args:
        request: Incoming request.
        header: Header carrying the API key.

    Returns:
        str: ``api_key:<key>`` or ``ip:<host>``.
    """

    api_key = request.headers.get(header)
    if api_key:
        return f"api_key:{api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


_CLASSIFIERS: dict[str, Classifier] = {
    "global": global_bucket,
    "ip": client_ip,
    "api_key": api_key_or_ip,
}


def get_classifier(kind: str) -> Classifier:
    """Return the classifier registered under ``kind``.

    Raises:
        ConfigurationAppError: If ``kind`` is not a known strategy.
    """

    try:
        return _CLASSIFIERS[kind.lower()]
    except KeyError:
        raise ConfigurationAppError(
            code="ratelimit_unknown_classifier",
            message=(
                f"Unknown classifier: '{kind}'. Supported classifiers: "
                f"{', '.join(sorted(_CLASSIFIERS))}"
            ),
            details={"setting": "RATELIMIT_CLASSIFY_BY", "actual_value": kind},
        ) from None
