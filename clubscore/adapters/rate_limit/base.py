"""Rate limiter interfaces.

The HTTP layer should depend on this abstraction (not the concrete
implementation) so we can swap storage backends later (e.g., Redis) with
minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from clubscore.core.errors import require_positive

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_MS = 60000


@dataclass(frozen=True)
class RateLimitConfig:
    """Limit applied to one identifier.

    Attributes:
        max_requests: Requests allowed per window (default 100).
        window_ms: Window length in milliseconds (default 60000).

    Raises:
        ConfigurationAppError: If either value is not strictly positive.
    """

    max_requests: int = DEFAULT_MAX_REQUESTS
    window_ms: int = DEFAULT_WINDOW_MS

    def __post_init__(self) -> None:
        require_positive("max_requests", self.max_requests)
        require_positive("window_ms", self.window_ms)

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, identifier: str, config: RateLimitConfig | None = None) -> RateLimitResult:
        """Count one request for identifier and report whether it is allowed.

        Args:
            identifier: Unique identifier (e.g., client IP plus route).
            config: Limit to apply; implementations fall back to their default.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self, identifier: str) -> None:
        """Forget identifier as if it had never made a request."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> int:
        """Forget every identifier, returning how many were tracked."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Return the tracked identifier count and the identifiers."""
        raise NotImplementedError
