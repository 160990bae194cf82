"""Owned background thread that runs a maintenance task on a fixed interval.

Used by the app lifespan to bound memory of the cache and the rate limiter.
Start and stop are explicit so tests and shutdown never leak timers.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from clubscore.core.errors import require_positive

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """Run ``task`` every ``interval_seconds`` on a daemon thread.

    Exceptions raised by the task are logged and the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        task: Callable[[], Any],
    ) -> None:
        require_positive("interval_seconds", interval_seconds)
        self.name = name
        self.interval_seconds = interval_seconds
        self._task = task
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop; calling start on a running sweeper is a no-op."""
        if self.running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"sweeper-{self.name}",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "sweeper.started",
            extra={"sweeper": self.name, "interval_s": self.interval_seconds},
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the loop to exit and wait for the thread."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout)
            logger.info("sweeper.stopped", extra={"sweeper": self.name, "runs": self.runs})

    def run_once(self) -> Any:
        """Run the task a single time, logging instead of raising."""
        try:
            result = self._task()
        except Exception as exc:
            logger.error(
                "sweeper.failed",
                extra={
                    "sweeper": self.name,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return None
        finally:
            self.runs += 1

        logger.debug("sweeper.ran", extra={"sweeper": self.name, "result": result})
        return result

    def _run(self) -> None:
        # wait() returns True once stop() is called
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()
