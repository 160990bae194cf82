"""Application factory and composition root.

Builds the cache, the rate limiter, its per-route policy and the background
sweepers as explicit instances stored on ``app.state``. Each call returns a
fully isolated app, which is what the tests rely on.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clubscore.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from clubscore.adapters.rate_limit.policy import RateLimitPolicy
from clubscore.api.routes import admin_router, health_router, version_router
from clubscore.core.config import Settings, settings as default_settings
from clubscore.core.exception_handlers import setup_exception_handlers
from clubscore.core.logging import configure_logging
from clubscore.core.middleware import request_id_middleware
from clubscore.core.openapi import apply_openapi_customizations
from clubscore.core.rate_limit import rate_limit_middleware
from clubscore.utils.simple_cache import SimpleTTLCache
from clubscore.utils.sweeper import PeriodicSweeper

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization", "X-API-Key"]
CORS_MAX_AGE = 86400


def build_sweepers(
    cache: SimpleTTLCache,
    limiter: InMemoryFixedWindowRateLimiter,
    app_settings: Settings,
) -> list[PeriodicSweeper]:
    """Create (but do not start) the cache and rate limiter sweepers."""
    grace_seconds = app_settings.rate_limit.sweep_grace_ms / 1000
    return [
        PeriodicSweeper(
            "cache",
            app_settings.cache.sweep_interval_seconds,
            cache.cleanup,
        ),
        PeriodicSweeper(
            "rate_limit",
            app_settings.rate_limit.sweep_interval_seconds,
            lambda: limiter.sweep(grace_seconds),
        ),
    ]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the sweepers for as long as the app serves requests."""
    for sweeper in app.state.sweepers:
        sweeper.start()
    try:
        yield
    finally:
        for sweeper in app.state.sweepers:
            sweeper.stop()


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.

    Returns:
        Configured FastAPI app with state, middleware, handlers and routers.

    Raises:
        ConfigurationAppError: If a limit, TTL or interval is not positive.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Club Score Edge API",
        description=(
            "Request edge of the club results tracker: per-client fixed-window "
            "rate limiting, TTL response caching and admin tooling to inspect "
            "and reset both."
        ),
        version=cfg.app.version,
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    policy = RateLimitPolicy.from_settings(cfg.rate_limit)
    limiter = InMemoryFixedWindowRateLimiter(default_config=policy.default)
    cache = SimpleTTLCache(
        default_ttl_seconds=cfg.cache.default_ttl_seconds,
        max_entries=cfg.cache.max_entries,
    )

    app.state.settings = cfg
    app.state.rate_limit_policy = policy
    app.state.rate_limiter = limiter
    app.state.cache = cache
    app.state.sweepers = build_sweepers(cache, limiter, cfg)

    # Middleware: the last one registered runs first, so CORS answers
    # preflights before rate limiting and request ids wrap everything.
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors.allowed_origins,
        allow_origin_regex=cfg.cors.allowed_origin_regex,
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
        max_age=CORS_MAX_AGE,
    )

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(version_router)
    app.include_router(admin_router)

    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "environment": cfg.app_env,
            "rate_limit_enabled": cfg.rate_limit.enabled,
            "cache_enabled": cfg.cache.enabled,
        },
    )
    return app
