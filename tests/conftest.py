"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any clubscore import so the global
settings object is built from test values and no .env file is loaded.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Callable  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from clubscore.core.app_factory import create_app  # noqa: E402
from clubscore.core.config import (  # noqa: E402
    AppSettings,
    CacheSettings,
    CorsSettings,
    LogSettings,
    RateLimitSettings,
    Settings,
)


class FakeTime:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings with per-group overrides, e.g. rate_limit={"max_requests": 2}."""

    def _make(**groups: dict) -> Settings:
        return Settings(
            app=AppSettings(**groups.get("app", {})),
            log=LogSettings(**groups.get("log", {})),
            rate_limit=RateLimitSettings(**groups.get("rate_limit", {})),
            cache=CacheSettings(**groups.get("cache", {})),
            cors=CorsSettings(**groups.get("cors", {})),
        )

    return _make


@pytest.fixture
def app(make_settings: Callable[..., Settings]) -> FastAPI:
    return create_app(make_settings())


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": "test-api-key-123"}
