"""Rate limiting adapters.

The limiter starts out in process memory; the store abstraction leaves room
for a shared backend later without changing the API layer.
"""

from etags.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractRateLimitStore,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
)
from etags.adapters.rate_limit.in_memory import FixedWindowRateLimiter, InMemoryRateLimitStore

__all__ = [
    "AbstractRateLimiter",
    "AbstractRateLimitStore",
    "FixedWindowRateLimiter",
    "InMemoryRateLimitStore",
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitResult",
]
