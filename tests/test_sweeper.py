"""Tests for the periodic sweeper and its lifespan wiring."""

import threading

import pytest
from fastapi.testclient import TestClient

from clubscore.core.errors import ConfigurationAppError
from clubscore.utils.sweeper import PeriodicSweeper


def test_runs_task_until_stopped() -> None:
    """The task runs on each tick until stop."""
    ran = threading.Event()
    sweeper = PeriodicSweeper("test", 0.01, ran.set)

    sweeper.start()
    try:
        assert ran.wait(2.0)
        assert sweeper.running
    finally:
        sweeper.stop()

    assert not sweeper.running
    assert sweeper.runs >= 1


def test_start_is_idempotent() -> None:
    """Starting twice keeps one thread."""
    sweeper = PeriodicSweeper("test", 60, lambda: None)
    sweeper.start()
    first_thread = sweeper._thread
    sweeper.start()

    assert sweeper._thread is first_thread
    sweeper.stop()


def test_stop_before_start_is_safe() -> None:
    """Stopping an idle sweeper is a no-op."""
    PeriodicSweeper("test", 60, lambda: None).stop()


def test_task_errors_are_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    """A failing task is logged and the loop survives."""
    def _boom() -> None:
        raise RuntimeError("boom")

    sweeper = PeriodicSweeper("broken", 60, _boom)

    assert sweeper.run_once() is None
    assert sweeper.runs == 1
    assert any(r.getMessage() == "sweeper.failed" for r in caplog.records)


def test_run_once_returns_task_result() -> None:
    """run_once hands back what the task returned."""
    assert PeriodicSweeper("count", 60, lambda: 3).run_once() == 3


def test_non_positive_interval_fails_fast() -> None:
    """Intervals must be positive."""
    with pytest.raises(ConfigurationAppError):
        PeriodicSweeper("bad", 0, lambda: None)


def test_lifespan_starts_and_stops_sweepers(app) -> None:
    """Sweepers run only while the app is up."""
    with TestClient(app) as client:
        resp = client.get("/health")
        assert resp.json() == {
            "status": "ok",
            "sweepers": {"cache": True, "rate_limit": True},
        }

    assert all(not s.running for s in app.state.sweepers)


def test_sweepers_are_wired_to_cache_and_limiter(app) -> None:
    """Sweepers call cache cleanup and limiter sweep."""
    cache_sweeper, limiter_sweeper = app.state.sweepers
    app.state.cache.set("k", "v", 60)
    app.state.rate_limiter.check("1.2.3.4:/api/games")

    assert cache_sweeper.interval_seconds == 300
    assert limiter_sweeper.interval_seconds == 60
    # fresh entries survive a sweep
    assert cache_sweeper.run_once() == 0
    assert limiter_sweeper.run_once() == 0
    assert app.state.cache.stats()["size"] == 1
    assert app.state.rate_limiter.stats()["tracked_identifiers"] == 1
