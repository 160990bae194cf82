from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from clubscore.core.response_cache import get_cache, serve_cached
from clubscore.schemas.admin import VersionResponse
from clubscore.utils.simple_cache import SimpleTTLCache

router = APIRouter(tags=["Version"])


@router.get("/api/version", response_model=VersionResponse)
async def get_version(
    request: Request,
    cache: SimpleTTLCache = Depends(get_cache),
) -> Response:
    """Deployed service version, polled by clients to detect new releases.

    Served through the response cache; the response carries X-Cache and
    X-Cache-TTL headers.
    """

    settings = request.app.state.settings

    async def _load() -> VersionResponse:
        return VersionResponse(
            name=settings.app.name,
            version=settings.app.version,
            environment=settings.app_env,
        )

    return await serve_cached(
        request,
        cache,
        ttl_seconds=settings.cache.version_ttl_seconds,
        handler=_load,
        enabled=settings.cache.enabled,
    )
