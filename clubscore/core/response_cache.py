"""Response caching for read routes.

The cache key is the full request URL (path and query string). Hits are
served straight from the cache; misses run the handler and store its payload
only when the outcome is a 2xx JSON response. Errors are never cached.

Usage:
    @router.get("/api/version")
    async def version(request: Request, cache: SimpleTTLCache = Depends(get_cache)):
        return await serve_cached(request, cache, ttl_seconds=60, handler=_load)
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from clubscore.utils.simple_cache import KeyPattern, SimpleTTLCache

logger = logging.getLogger(__name__)

CACHE_HEADER = "X-Cache"
CACHE_TTL_HEADER = "X-Cache-TTL"


def build_request_cache_key(request: Request) -> str:
    """Cache key for a request: the full URL including the query string."""

    return str(request.url)


def get_cache(request: Request) -> SimpleTTLCache:
    """FastAPI dependency returning the app-owned cache."""

    return request.app.state.cache


def _cache_headers(status: str, ttl_seconds: float) -> dict[str, str]:
    return {CACHE_HEADER: status, CACHE_TTL_HEADER: f"{ttl_seconds:g}"}


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


async def serve_cached(
    request: Request,
    cache: SimpleTTLCache,
    ttl_seconds: float,
    handler: Callable[[], Awaitable[Any]],
    *,
    enabled: bool = True,
) -> Response:
    """Serve a route through the cache.

    Args:
        request: Incoming request, used to derive the cache key.
        cache: Cache instance owned by the app.
        ttl_seconds: Lifetime of a stored payload; echoed in X-Cache-TTL.
        handler: Coroutine factory producing a JSON-serializable payload or a
            Response. HTTPException raised by the handler propagates uncached.
        enabled: When False the handler always runs and nothing is stored.

    Returns:
        JSONResponse with X-Cache set to HIT or MISS, or the handler's own
        response when it is not a cacheable 2xx JSON response.
    """

    if not enabled:
        result = await handler()
        return result if isinstance(result, Response) else JSONResponse(jsonable_encoder(result))

    key = build_request_cache_key(request)
    cached = cache.get(key)
    if cached is not None:
        return JSONResponse(content=cached, headers=_cache_headers("HIT", ttl_seconds))

    result = await handler()

    if isinstance(result, Response):
        if not (_is_success(result.status_code) and isinstance(result, JSONResponse)):
            logger.debug(
                "response_cache.skipped",
                extra={"status_code": result.status_code, "path": request.url.path},
            )
            return result
        payload = json.loads(result.body)
        status_code = result.status_code
    else:
        payload = jsonable_encoder(result)
        status_code = 200

    cache.set(key, payload, ttl_seconds)
    return JSONResponse(
        content=payload,
        status_code=status_code,
        headers=_cache_headers("MISS", ttl_seconds),
    )


def invalidate_cache(cache: SimpleTTLCache, pattern: KeyPattern) -> int:
    """Drop cached responses after a write made them stale.

    Args:
        cache: Cache instance owned by the app.
        pattern: Exact key, compiled regex, or predicate over keys.

    Returns:
        Number of entries removed.
    """

    return cache.invalidate(pattern)
