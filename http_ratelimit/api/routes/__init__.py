from __future__ import annotations

from http_ratelimit.api.routes.health import router as health_router
from http_ratelimit.api.routes.limits import router as limits_router

__all__ = ["health_router", "limits_router"]
