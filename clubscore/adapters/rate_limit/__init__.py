"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start
with an in-memory limiter and later migrate to Redis or another shared
store without changing the HTTP layer.
"""

from clubscore.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitResult,
)
from clubscore.adapters.rate_limit.client_ip import get_client_ip
from clubscore.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from clubscore.adapters.rate_limit.policy import RateLimitPolicy, RateLimitRule

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitConfig",
    "RateLimitPolicy",
    "RateLimitResult",
    "RateLimitRule",
    "get_client_ip",
]
