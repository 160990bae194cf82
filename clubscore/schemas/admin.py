"""Pydantic schemas for the admin and version routes."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class VersionResponse(BaseModel):
    """Service identity served to clients checking for updates."""

    name: str = Field(..., description="Service name.")
    version: str = Field(..., description="Deployed version string.")
    environment: str = Field(..., description="APP_ENV the service runs under.")


class TopClient(BaseModel):
    client_id: str
    request_count: int


class RateLimitUsage(BaseModel):
    """Limiter state summary."""

    tracked_identifiers: int = Field(..., description="Records currently held.")
    identifiers: List[str] = Field(default_factory=list)
    active_windows: int = 0
    expired_windows: int = 0
    top_clients: List[TopClient] = Field(default_factory=list)


class EdgeStatsResponse(BaseModel):
    """Combined cache and rate limiter statistics."""

    cache: Dict[str, Any] = Field(
        ..., description="Cache size, live keys and hit/miss/eviction counters."
    )
    rate_limit: RateLimitUsage


class CacheInvalidateRequest(BaseModel):
    """Exactly one of key (exact match) or pattern (regular expression)."""

    key: Optional[str] = Field(None, description="Exact cache key (full request URL).")
    pattern: Optional[str] = Field(None, description="Regular expression searched in keys.")

    @model_validator(mode="after")
    def _exactly_one(self) -> "CacheInvalidateRequest":
        if (self.key is None) == (self.pattern is None):
            raise ValueError("Provide exactly one of 'key' or 'pattern'")
        return self


class CountResponse(BaseModel):
    cleared: int = Field(..., description="Number of records removed.")


class InvalidateResponse(BaseModel):
    removed: int = Field(..., description="Number of cache entries removed.")
