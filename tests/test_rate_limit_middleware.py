"""Integration tests for the rate limiting middleware."""

import time

import pytest
from fastapi.testclient import TestClient

from clubscore.core.app_factory import create_app
from clubscore.core.config import AUTH_RATE_LIMIT_MESSAGE, EndpointRateLimit


@pytest.fixture
def strict_client(make_settings) -> TestClient:
    app = create_app(
        make_settings(
            rate_limit={
                "endpoint_overrides": {
                    "/api/version": EndpointRateLimit(max_requests=2, window_ms=60000),
                    "/api/auth": EndpointRateLimit(
                        max_requests=1, message=AUTH_RATE_LIMIT_MESSAGE
                    ),
                }
            },
        )
    )
    return TestClient(app)


def test_allowed_responses_carry_rate_limit_headers(strict_client: TestClient) -> None:
    """Allowed responses expose limit, remaining and an epoch reset."""
    before = int(time.time())
    resp = strict_client.get("/api/version")

    assert resp.status_code == 200
    assert resp.headers["X-RateLimit-Limit"] == "2"
    assert resp.headers["X-RateLimit-Remaining"] == "1"
    reset = int(resp.headers["X-RateLimit-Reset"])
    assert before + 59 <= reset <= before + 61


def test_rejection_contract(strict_client: TestClient) -> None:
    """A blocked request gets the 429 body and Retry-After."""
    strict_client.get("/api/version")
    strict_client.get("/api/version")

    resp = strict_client.get("/api/version")

    assert resp.status_code == 429
    body = resp.json()
    assert body["error"] == "Too many requests"
    assert 0 < body["retryAfter"] <= 60
    assert body["message"] == f"Rate limit exceeded. Try again in {body['retryAfter']} seconds."
    assert resp.headers["Retry-After"] == str(body["retryAfter"])
    assert resp.headers["X-RateLimit-Remaining"] == "0"


def test_route_message_is_used_on_rejection(strict_client: TestClient) -> None:
    """A route with its own message uses it in the 429 body."""
    strict_client.post("/api/auth/login")

    resp = strict_client.post("/api/auth/login")

    assert resp.status_code == 429
    assert resp.json()["message"] == AUTH_RATE_LIMIT_MESSAGE


def test_clients_are_limited_independently(strict_client: TestClient) -> None:
    """Exhausting one client does not block another."""
    first = {"X-Forwarded-For": "203.0.113.1"}
    second = {"X-Forwarded-For": "203.0.113.2"}

    strict_client.get("/api/version", headers=first)
    strict_client.get("/api/version", headers=first)
    assert strict_client.get("/api/version", headers=first).status_code == 429

    assert strict_client.get("/api/version", headers=second).status_code == 200


def test_limits_are_tracked_per_client_and_route(strict_client: TestClient) -> None:
    """Keys combine the first forwarded hop with the matched route."""
    headers = {"X-Forwarded-For": "198.51.100.7, 10.0.0.1"}
    strict_client.get("/api/version", headers=headers)

    identifiers = strict_client.app.state.rate_limiter.stats()["identifiers"]
    assert identifiers == ["198.51.100.7:/api/version"]


def test_health_is_exempt(strict_client: TestClient) -> None:
    """Health checks are never counted."""
    for _ in range(5):
        resp = strict_client.get("/health")
        assert resp.status_code == 200
        assert "X-RateLimit-Limit" not in resp.headers


def test_disabled_rate_limiting_skips_checks(make_settings) -> None:
    """Turning the limiter off removes headers and tracking."""
    client = TestClient(create_app(make_settings(rate_limit={"enabled": False})))

    resp = client.get("/api/version")

    assert resp.status_code == 200
    assert "X-RateLimit-Limit" not in resp.headers
    assert client.app.state.rate_limiter.stats()["tracked_identifiers"] == 0


def test_each_app_owns_its_limiter(make_settings) -> None:
    """Apps built separately share no limiter or cache."""
    first = create_app(make_settings())
    second = create_app(make_settings())

    assert first.state.rate_limiter is not second.state.rate_limiter
    assert first.state.cache is not second.state.cache


def test_unmatched_paths_share_one_bucket_per_client(make_settings) -> None:
    """Unknown paths draw from a single default budget instead of one each."""
    client = TestClient(create_app(make_settings(rate_limit={"max_requests": 2})))
    headers = {"X-Forwarded-For": "203.0.113.50"}

    assert client.get("/no-such-page-1", headers=headers).status_code == 404
    assert client.get("/no-such-page-2", headers=headers).status_code == 404
    resp = client.get("/no-such-page-3", headers=headers)

    assert resp.status_code == 429
    assert client.app.state.rate_limiter.stats()["identifiers"] == ["203.0.113.50:/*"]


def test_default_bucket_is_cleared_with_the_client(make_settings, admin_headers) -> None:
    """Resetting a client also forgets its default bucket."""
    client = TestClient(create_app(make_settings()))
    headers = {"X-Forwarded-For": "203.0.113.51"}
    client.get("/no-such-page", headers=headers)
    client.get("/api/version", headers=headers)

    resp = client.delete("/api/admin/rate-limits/203.0.113.51", headers=admin_headers)

    assert resp.json() == {"cleared": 2}


def test_repeated_forwarded_for_lines_key_on_the_first_hop(strict_client: TestClient) -> None:
    """A second X-Forwarded-For line does not replace the originating client."""
    strict_client.get(
        "/api/version",
        headers=[("X-Forwarded-For", "203.0.113.1"), ("X-Forwarded-For", "198.51.100.1")],
    )

    identifiers = strict_client.app.state.rate_limiter.stats()["identifiers"]
    assert identifiers == ["203.0.113.1:/api/version"]
