"""Rate limiter interfaces and value types.

Route wiring depends on these abstractions only, so counter storage can be
swapped (e.g., for a shared cache) without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class RateLimitConfig:
    """A named policy's budget.

    Attributes:
        max_requests: Requests admitted per window (inclusive).
        window_ms: Window length in milliseconds.
    """

    max_requests: int
    window_ms: int

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")


@dataclass
class RateLimitEntry:
    """Counter state for one identifier.

    Attributes:
        count: Requests seen in the current window, rejected ones included.
        reset_time: Epoch milliseconds at which the window ends.
    """

    count: int
    reset_time: float


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single check.

    Attributes:
        success: Whether the request is admitted.
        limit: The policy's max_requests.
        remaining: Requests left in the window (0 when rejected).
        reset_time: Epoch milliseconds at which the window ends.
        retry_after: Seconds to wait, only set when rejected.
    """

    success: bool
    limit: int
    remaining: int
    reset_time: float
    retry_after: int | None = None


class AbstractRateLimitStore(ABC):
    """Key/value storage for rate limit entries.

    Implementations need not be thread-safe: the limiter serializes access.
    """

    @abstractmethod
    def get(self, key: str) -> RateLimitEntry | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, entry: RateLimitEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def keys(self) -> Iterator[str]:
        raise NotImplementedError

    def __len__(self) -> int:
        return sum(1 for _ in self.keys())


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for ``identifier`` and decide whether to admit it.

        Args:
            identifier: Caller key, already namespaced by policy.
            config: Budget to enforce.

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop entries whose window has ended; return how many were removed."""
        raise NotImplementedError
