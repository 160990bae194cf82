"""Per-route rate limit rules.

Routes are matched by the longest configured prefix that ends on a path
segment boundary, so ``/api/auth`` also covers ``/api/auth/login``. Paths
without an override use the default config.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from clubscore.adapters.rate_limit.base import RateLimitConfig
from clubscore.core.config import EndpointRateLimit, RateLimitSettings


@dataclass(frozen=True)
class RateLimitRule:
    """Resolved limit for a request path.

    Attributes:
        route: Matched route prefix, or None when the default applies.
        config: Limit to enforce.
        message: Optional custom rejection message.
    """

    route: str | None
    config: RateLimitConfig
    message: str | None = None


class RateLimitPolicy:
    """Maps request paths to rate limit rules."""

    def __init__(
        self,
        default: RateLimitConfig | None = None,
        overrides: Mapping[str, RateLimitRule] | None = None,
    ) -> None:
        self._default = default or RateLimitConfig()
        self._overrides = {
            self._normalize(route): rule for route, rule in (overrides or {}).items()
        }

    @staticmethod
    def _normalize(route: str) -> str:
        return route.rstrip("/") or "/"

    @property
    def default(self) -> RateLimitConfig:
        return self._default

    def resolve(self, path: str) -> RateLimitRule:
        """Return the rule for path, falling back to the default config."""
        best: str | None = None
        for route in self._overrides:
            if path == route or path.startswith(route.rstrip("/") + "/"):
                if best is None or len(route) > len(best):
                    best = route

        if best is None:
            return RateLimitRule(route=None, config=self._default)
        return self._overrides[best]

    @classmethod
    def from_settings(cls, rate_limit_settings: RateLimitSettings) -> "RateLimitPolicy":
        """Build the policy from settings, filling unset override fields.

        Raises:
            ConfigurationAppError: If a resolved value is not positive.
        """
        default = RateLimitConfig(
            max_requests=rate_limit_settings.max_requests,
            window_ms=rate_limit_settings.window_ms,
        )
        overrides = {
            route: _rule_from_override(route, override, default)
            for route, override in rate_limit_settings.endpoint_overrides.items()
        }
        return cls(default=default, overrides=overrides)


def _rule_from_override(
    route: str, override: EndpointRateLimit, default: RateLimitConfig
) -> RateLimitRule:
    config = RateLimitConfig(
        max_requests=override.max_requests or default.max_requests,
        window_ms=override.window_ms or default.window_ms,
    )
    return RateLimitRule(route=route, config=config, message=override.message)
