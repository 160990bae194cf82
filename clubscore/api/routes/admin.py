from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, Request

from clubscore.core.auth import verify_api_key
from clubscore.core.errors import ValidationAppError
from clubscore.core.logging import hash_identifier
from clubscore.core.response_cache import get_cache, invalidate_cache
from clubscore.schemas.admin import (
    CacheInvalidateRequest,
    CountResponse,
    EdgeStatsResponse,
    InvalidateResponse,
    RateLimitUsage,
)
from clubscore.utils.simple_cache import SimpleTTLCache

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("/stats", response_model=EdgeStatsResponse)
def edge_stats(request: Request, cache: SimpleTTLCache = Depends(get_cache)) -> EdgeStatsResponse:
    """Report cache contents and rate limiter pressure for monitoring."""

    limiter = request.app.state.rate_limiter
    usage = limiter.usage_report()
    return EdgeStatsResponse(
        cache=cache.stats(),
        rate_limit=RateLimitUsage(
            **limiter.stats(),
            active_windows=usage["active_windows"],
            expired_windows=usage["expired_windows"],
            top_clients=usage["top_clients"],
        ),
    )


@router.delete("/rate-limits/{client_id}", response_model=CountResponse)
def reset_client_limits(client_id: str, request: Request) -> CountResponse:
    """Forget every route window of one client."""

    cleared = request.app.state.rate_limiter.reset_client(client_id)
    logger.info(
        "rate_limit.client_reset",
        extra={"client_hash": hash_identifier(client_id), "cleared": cleared},
    )
    return CountResponse(cleared=cleared)


@router.delete("/rate-limits", response_model=CountResponse)
def clear_rate_limits(request: Request) -> CountResponse:
    cleared = request.app.state.rate_limiter.clear()
    logger.warning("rate_limit.cleared", extra={"cleared": cleared})
    return CountResponse(cleared=cleared)


@router.post("/cache/invalidate", response_model=InvalidateResponse)
def invalidate(
    body: CacheInvalidateRequest,
    cache: SimpleTTLCache = Depends(get_cache),
) -> InvalidateResponse:
    """Drop cached responses by exact key or by regular expression.

    Raises:
        ValidationAppError: If the pattern is not a valid regular expression.
    """

    if body.key is not None:
        return InvalidateResponse(removed=invalidate_cache(cache, body.key))

    try:
        compiled = re.compile(body.pattern or "")
    except re.error as exc:
        raise ValidationAppError(
            code="invalid_pattern",
            message="Cache pattern is not a valid regular expression",
            details={"hint": str(exc)},
        ) from exc

    return InvalidateResponse(removed=invalidate_cache(cache, compiled))


@router.delete("/cache")
def clear_cache(cache: SimpleTTLCache = Depends(get_cache)) -> dict:
    cache.clear()
    logger.warning("cache.cleared")
    return {"cleared": True}
