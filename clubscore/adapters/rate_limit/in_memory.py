"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, including the sweeper.
- Windows start at the first request of an identifier, so a client can burst
  up to twice the limit across a window boundary.
"""

from __future__ import annotations

import math
import threading
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable

from clubscore.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitResult,
)

UNKNOWN_IDENTIFIER = "unknown"


@dataclass
class RateRecord:
    count: int
    window_start: float
    reset_at: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per identifier.

    Each identifier gets its own window which opens on its first request
    and lasts ``config.window_ms``. Requests over the limit are still counted
    so the stats reflect real pressure from a client.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        default_config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            default_config: Limit used when check() receives no config.
            clock: Time source function returning UNIX time in seconds.
        """
        self._default_config = default_config or RateLimitConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, RateRecord] = {}

    @property
    def default_config(self) -> RateLimitConfig:
        return self._default_config

    def _open_window(self, identifier: str, now: float, config: RateLimitConfig) -> RateRecord:
        record = RateRecord(count=1, window_start=now, reset_at=now + config.window_seconds)
        self._records[identifier] = record
        return record

    def _build_allowed_result(self, *, limit: int, remaining: int, reset_at: float) -> RateLimitResult:
        """Build a RateLimitResult for an allowed request."""
        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=None,
        )

    def _build_blocked_result(self, *, now: float, limit: int, reset_at: float) -> RateLimitResult:
        """Build a RateLimitResult for a blocked request."""
        retry_after = max(0, int(math.ceil(reset_at - now)))
        return RateLimitResult(
            allowed=False,
            limit=limit,
            remaining=0,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )

    def check(self, identifier: str, config: RateLimitConfig | None = None) -> RateLimitResult:
        """Count one request for identifier within its current window.

        Args:
            identifier: Unique identifier for rate limiting (e.g., "ip:/route").
                Blank identifiers are tracked as "unknown".
            config: Limit to apply; defaults to the limiter's default config.

        Returns:
            RateLimitResult with allowance decision and metadata.
        """
        config = config or self._default_config
        identifier = identifier or UNKNOWN_IDENTIFIER
        limit = config.max_requests

        with self._lock:
            now = self._clock()
            record = self._records.get(identifier)

            if record is None or now > record.reset_at:
                record = self._open_window(identifier, now, config)
                return self._build_allowed_result(
                    limit=limit, remaining=limit - 1, reset_at=record.reset_at
                )

            record.count += 1
            if record.count > limit:
                return self._build_blocked_result(now=now, limit=limit, reset_at=record.reset_at)

            return self._build_allowed_result(
                limit=limit, remaining=limit - record.count, reset_at=record.reset_at
            )

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._records.pop(identifier, None)

    def reset_client(self, client_id: str) -> int:
        """Drop every route record of a client.

        Args:
            client_id: Client identifier, typically an IP address.

        Returns:
            Number of records removed.
        """
        prefix = f"{client_id}:/"
        with self._lock:
            keys = [
                key for key in self._records
                if key == client_id or key.startswith(prefix)
            ]
            for key in keys:
                del self._records[key]
        return len(keys)

    def clear(self) -> int:
        with self._lock:
            count = len(self._records)
            self._records.clear()
        return count

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "tracked_identifiers": len(self._records),
                "identifiers": list(self._records),
            }

    def usage_report(self, top_n: int = 10) -> dict[str, Any]:
        """Summarize windows and the busiest clients for monitoring.

        Identifiers are grouped by client (the part before ":/route").

        Args:
            top_n: How many clients to include, busiest first.

        Returns:
            Dict with total_keys, active_windows, expired_windows and
            top_clients as a list of {client_id, request_count}.
        """
        with self._lock:
            now = self._clock()
            active = 0
            per_client: Counter[str] = Counter()
            for identifier, record in self._records.items():
                if now <= record.reset_at:
                    active += 1
                client_id = identifier.partition(":/")[0]
                per_client[client_id] += record.count
            total = len(self._records)

        return {
            "total_keys": total,
            "active_windows": active,
            "expired_windows": total - active,
            "top_clients": [
                {"client_id": client_id, "request_count": count}
                for client_id, count in per_client.most_common(top_n)
            ],
        }

    def sweep(self, grace_seconds: float = 60.0) -> int:
        """Remove records whose window ended more than grace_seconds ago.

        Args:
            grace_seconds: Time a finished window is kept around.

        Returns:
            Number of records removed.
        """
        with self._lock:
            cutoff = self._clock() - grace_seconds
            stale = [key for key, record in self._records.items() if record.reset_at < cutoff]
            for key in stale:
                del self._records[key]
        return len(stale)
