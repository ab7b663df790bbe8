"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: check-and-increment and purge share one lock.
- Windows start at a key's first request, not on wall-clock boundaries, so a
  client can land up to 2x max_requests across a window edge.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable, Iterator

from etags.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractRateLimitStore,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
)


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Dict-backed entry store."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}

    def get(self, key: str) -> RateLimitEntry | None:
        return self._entries.get(key)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> Iterator[str]:
        # Snapshot so callers may delete while iterating
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key in fixed windows.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        store: AbstractRateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Entry storage; a fresh in-memory store when omitted.
            clock: Time source returning UNIX time in seconds.
        """
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def store(self) -> AbstractRateLimitStore:
        return self._store

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for ``identifier`` and decide whether to admit it.

        The ``max_requests``-th request in a window is still admitted; the next
        one is the first rejected. Rejected requests keep incrementing the
        stored count until the window ends.

        Raises:
            ValueError: If identifier is empty.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        with self._lock:
            now = self._now_ms()
            entry = self._store.get(identifier)

            if entry is None or now > entry.reset_time:
                entry = RateLimitEntry(count=1, reset_time=now + config.window_ms)
                self._store.set(identifier, entry)
                return RateLimitResult(
                    success=True,
                    limit=config.max_requests,
                    remaining=config.max_requests - 1,
                    reset_time=entry.reset_time,
                )

            entry.count += 1

            if entry.count > config.max_requests:
                return RateLimitResult(
                    success=False,
                    limit=config.max_requests,
                    remaining=0,
                    reset_time=entry.reset_time,
                    retry_after=math.ceil((entry.reset_time - now) / 1000),
                )

            return RateLimitResult(
                success=True,
                limit=config.max_requests,
                remaining=config.max_requests - entry.count,
                reset_time=entry.reset_time,
            )

    def purge_expired(self) -> int:
        with self._lock:
            now = self._now_ms()
            removed = 0
            for key in self._store.keys():
                entry = self._store.get(key)
                if entry is not None and now > entry.reset_time:
                    self._store.delete(key)
                    removed += 1
            return removed

    def peek(self, identifier: str) -> RateLimitEntry | None:
        """Return the stored entry for ``identifier`` without counting a request."""
        with self._lock:
            return self._store.get(identifier)
