"""Rate limiting middleware for the HTTP layer.

This module wires the rate limiting adapter into FastAPI.

Design goals:
- The limiter and policy live on ``app.state`` (created by the app factory),
  so tests can build isolated apps instead of clearing globals.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind the
  abstract interface.

Strategy:
- Fixed-window limit per client IP and route prefix (``"<ip>:<route>"``);
  unmatched paths share the client's ``"<ip>:/*"`` bucket.
- Every limited response carries X-RateLimit-Limit/Remaining/Reset, with the
  reset expressed as UNIX epoch seconds.
- Rejections are 429 with ``{"error", "message", "retryAfter"}`` and a
  Retry-After header.
"""

from __future__ import annotations

import logging
import math

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from clubscore.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from clubscore.adapters.rate_limit.client_ip import get_client_ip
from clubscore.adapters.rate_limit.policy import RateLimitPolicy, RateLimitRule
from clubscore.core.config import RateLimitSettings
from clubscore.core.logging import hash_identifier

logger = logging.getLogger(__name__)

RATE_LIMIT_ERROR = "Too many requests"

# Bucket shared by every path without its own override
DEFAULT_BUCKET = "/*"


def get_request_client_ip(request: Request) -> str:
    """Resolve the client IP of a Starlette request."""

    remote_addr = request.client.host if request.client else None
    return get_client_ip(request.headers, remote_addr)


def bucket_for(rule: RateLimitRule) -> str:
    return rule.route or DEFAULT_BUCKET


def build_rate_limit_key(client_ip: str, rule: RateLimitRule) -> str:
    """Namespace the client by the matched route.

    Paths without an override share one ``"<ip>:/*"`` bucket per client, so
    requests to arbitrary unknown paths cannot each open a fresh window.
    """

    return f"{client_ip}:{bucket_for(rule)}"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(math.ceil(result.reset_at))),
    }


def build_rejection(
    result: RateLimitResult,
    rule: RateLimitRule,
    *,
    include_headers: bool = True,
) -> JSONResponse:
    """Build the 429 response for a blocked request.

    Args:
        result: Blocked limiter result.
        rule: Rule that produced it (may carry a custom message).
        include_headers: Whether to add X-RateLimit-* headers.

    Returns:
        JSONResponse with status 429 and a Retry-After header.
    """

    retry_after = result.retry_after_seconds or 0
    headers = {"Retry-After": str(retry_after)}
    if include_headers:
        headers.update(rate_limit_headers(result))

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error": RATE_LIMIT_ERROR,
            "message": rule.message
            or f"Rate limit exceeded. Try again in {retry_after} seconds.",
            "retryAfter": retry_after,
        },
        headers=headers,
    )


def _is_exempt(request: Request, rate_limit_settings: RateLimitSettings) -> bool:
    if request.method == "OPTIONS":
        return True
    path = request.url.path
    return any(
        path == exempt or path.startswith(exempt.rstrip("/") + "/")
        for exempt in rate_limit_settings.exempt_paths
    )


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing per-client, per-route limits.

    Consumes one unit of the client's budget for the matched route. Blocked
    requests never reach the route handler.
    """

    rate_limit_settings: RateLimitSettings = request.app.state.settings.rate_limit
    if not rate_limit_settings.enabled or _is_exempt(request, rate_limit_settings):
        return await call_next(request)

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    policy: RateLimitPolicy = request.app.state.rate_limit_policy

    path = request.url.path
    rule = policy.resolve(path)
    client_ip = get_request_client_ip(request)
    key = build_rate_limit_key(client_ip, rule)

    result = limiter.check(key, rule.config)
    log_fields = {
        "client_hash": hash_identifier(client_ip),
        "route": bucket_for(rule),
        "limit": result.limit,
        "remaining": result.remaining,
        "window_ms": rule.config.window_ms,
    }

    if not result.allowed:
        logger.warning(
            "rate_limit.exceeded",
            extra={**log_fields, "retry_after_s": result.retry_after_seconds},
        )
        return build_rejection(
            result, rule, include_headers=rate_limit_settings.include_headers
        )

    logger.debug("rate_limit.allowed", extra=log_fields)
    response = await call_next(request)
    if rate_limit_settings.include_headers:
        response.headers.update(rate_limit_headers(result))
    return response
