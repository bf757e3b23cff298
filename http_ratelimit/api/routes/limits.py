from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Limits"])


@router.get("/limits")
def list_limits(request: Request) -> dict:
    """List the rate limiters installed on this service.

    Lets clients discover the limits they are subject to before hitting them.
    The request itself counts against those limits.
    """

    limiters = getattr(request.app.state, "limiters", [])
    return {"limiters": [limiter.describe() for limiter in limiters]}
