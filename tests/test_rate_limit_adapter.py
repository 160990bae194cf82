"""Unit tests for the in-memory fixed-window rate limiter."""

import threading
from unittest.mock import Mock

import pytest

from clubscore.adapters.rate_limit.base import RateLimitConfig
from clubscore.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from clubscore.core.errors import ConfigurationAppError

FIVE_PER_MINUTE = RateLimitConfig(max_requests=5, window_ms=60000)


def _limiter(now: float = 1000.0) -> tuple[InMemoryFixedWindowRateLimiter, Mock]:
    clock = Mock(return_value=now)
    return InMemoryFixedWindowRateLimiter(clock=clock), clock


def test_remaining_counts_down_then_blocks() -> None:
    """Remaining drops to zero, then the next request is blocked."""
    limiter, _ = _limiter()

    results = [limiter.check("192.168.1.1", FIVE_PER_MINUTE) for _ in range(5)]
    assert [r.allowed for r in results] == [True] * 5
    assert [r.remaining for r in results] == [4, 3, 2, 1, 0]

    blocked = limiter.check("192.168.1.1", FIVE_PER_MINUTE)
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.limit == 5


def test_first_request_opens_window_from_now() -> None:
    """The window starts at the first request."""
    limiter, _ = _limiter(now=1234.5)

    result = limiter.check("k", RateLimitConfig(max_requests=3, window_ms=10000))

    assert result.allowed is True
    assert result.remaining == 2
    assert result.reset_at == pytest.approx(1244.5)
    assert result.retry_after_seconds is None


def test_blocked_result_carries_retry_after() -> None:
    """Blocked results say how long to wait."""
    limiter, clock = _limiter()
    config = RateLimitConfig(max_requests=1, window_ms=60000)

    limiter.check("k", config)
    clock.return_value = 1010.2
    blocked = limiter.check("k", config)

    assert blocked.allowed is False
    assert blocked.reset_at == pytest.approx(1060.0)
    assert blocked.retry_after_seconds == 50


def test_over_limit_requests_keep_counting() -> None:
    """Rejected requests still add to the count."""
    limiter, _ = _limiter()
    config = RateLimitConfig(max_requests=1, window_ms=60000)

    for _ in range(4):
        limiter.check("k", config)

    assert limiter.usage_report()["top_clients"] == [{"client_id": "k", "request_count": 4}]


def test_resets_after_window_elapses() -> None:
    """A new window opens once the old one has passed."""
    limiter, clock = _limiter()
    config = RateLimitConfig(max_requests=5, window_ms=1000)

    for _ in range(5):
        limiter.check("192.168.1.1", config)
    assert limiter.check("192.168.1.1", config).allowed is False

    clock.return_value = 1001.1
    result = limiter.check("192.168.1.1", config)
    assert result.allowed is True
    assert result.remaining == 4
    assert result.reset_at == pytest.approx(1002.1)


def test_window_boundary_is_inclusive() -> None:
    """A request exactly at reset time still belongs to the old window."""
    limiter, clock = _limiter()
    config = RateLimitConfig(max_requests=1, window_ms=1000)

    limiter.check("k", config)
    clock.return_value = 1001.0  # now == reset_at: still the same window

    assert limiter.check("k", config).allowed is False


def test_isolated_by_identifier() -> None:
    """Identifiers do not share budgets."""
    limiter, _ = _limiter()
    config = RateLimitConfig(max_requests=2, window_ms=60000)

    limiter.check("192.168.1.1", config)
    limiter.check("192.168.1.1", config)
    assert limiter.check("192.168.1.1", config).allowed is False

    assert limiter.check("192.168.1.2", config).allowed is True


def test_reset_forgets_identifier() -> None:
    """Reset makes the next check start from scratch."""
    limiter, _ = _limiter()

    for _ in range(6):
        limiter.check("192.168.1.1", FIVE_PER_MINUTE)

    limiter.reset("192.168.1.1")
    result = limiter.check("192.168.1.1", FIVE_PER_MINUTE)
    assert result.allowed is True
    assert result.remaining == 4


def test_reset_unknown_identifier_is_noop() -> None:
    """Resetting an untracked identifier does nothing."""
    limiter, _ = _limiter()
    limiter.reset("never-seen")
    assert limiter.stats()["tracked_identifiers"] == 0


def test_reset_client_removes_all_routes_of_client() -> None:
    """Only the named client's records are removed."""
    limiter, _ = _limiter()
    limiter.check("10.0.0.1:/api/games")
    limiter.check("10.0.0.1:/api/rating")
    limiter.check("10.0.0.11:/api/games")
    limiter.check("::1:/api/games")

    assert limiter.reset_client("10.0.0.1") == 2
    assert sorted(limiter.stats()["identifiers"]) == ["10.0.0.11:/api/games", "::1:/api/games"]
    assert limiter.reset_client("::1") == 1


def test_default_config_is_100_per_minute() -> None:
    """Without a config the limiter allows 100 per minute."""
    limiter, _ = _limiter()

    result = limiter.check("k")

    assert result.limit == 100
    assert result.remaining == 99
    assert result.reset_at == pytest.approx(1060.0)


def test_blank_identifier_is_tracked_as_unknown() -> None:
    """Blank identifiers are counted under "unknown"."""
    limiter, _ = _limiter()

    assert limiter.check("").allowed is True
    assert limiter.stats()["identifiers"] == ["unknown"]


def test_stats_and_clear() -> None:
    """Stats list tracked identifiers and clear empties them."""
    limiter, _ = _limiter()
    limiter.check("192.168.1.1", FIVE_PER_MINUTE)
    limiter.check("192.168.1.2", FIVE_PER_MINUTE)

    stats = limiter.stats()
    assert stats["tracked_identifiers"] == 2
    assert set(stats["identifiers"]) == {"192.168.1.1", "192.168.1.2"}

    assert limiter.clear() == 2
    assert limiter.stats() == {"tracked_identifiers": 0, "identifiers": []}


def test_usage_report_groups_by_client_and_window_state() -> None:
    """The report sums per client and splits active from expired windows."""
    limiter, clock = _limiter()
    short = RateLimitConfig(max_requests=10, window_ms=1000)

    limiter.check("1.1.1.1:/api/games", short)
    limiter.check("1.1.1.1:/api/rating", FIVE_PER_MINUTE)
    limiter.check("1.1.1.1:/api/rating", FIVE_PER_MINUTE)
    limiter.check("2.2.2.2:/api/games", FIVE_PER_MINUTE)

    clock.return_value = 1002.0
    report = limiter.usage_report()

    assert report["total_keys"] == 3
    assert report["active_windows"] == 2
    assert report["expired_windows"] == 1
    assert report["top_clients"][0] == {"client_id": "1.1.1.1", "request_count": 3}
    assert report["top_clients"][1] == {"client_id": "2.2.2.2", "request_count": 1}


def test_sweep_drops_only_records_past_grace() -> None:
    """Sweeping keeps windows that ended within the grace period."""
    limiter, clock = _limiter()
    limiter.check("old", RateLimitConfig(max_requests=1, window_ms=1000))
    limiter.check("fresh", FIVE_PER_MINUTE)

    clock.return_value = 1001.0 + 30
    assert limiter.sweep(grace_seconds=60) == 0

    clock.return_value = 1001.0 + 61
    assert limiter.sweep(grace_seconds=60) == 1
    assert limiter.stats()["identifiers"] == ["fresh"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_ms": 60000},
        {"max_requests": 1, "window_ms": 0},
        {"max_requests": 1, "window_ms": -5},
    ],
)
def test_invalid_config_fails_fast(kwargs: dict) -> None:
    """Non-positive limits raise immediately."""
    with pytest.raises(ConfigurationAppError) as exc_info:
        RateLimitConfig(**kwargs)

    assert exc_info.value.code == "invalid_configuration"


def test_concurrent_checks_never_exceed_limit() -> None:
    """Parallel checks never allow more than the limit."""
    limiter = InMemoryFixedWindowRateLimiter()
    config = RateLimitConfig(max_requests=50, window_ms=60000)
    allowed: list[bool] = []
    lock = threading.Lock()

    def _worker() -> None:
        for _ in range(20):
            result = limiter.check("shared", config)
            with lock:
                allowed.append(result.allowed)

    threads = [threading.Thread(target=_worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert allowed.count(True) == 50
    assert allowed.count(False) == 150
