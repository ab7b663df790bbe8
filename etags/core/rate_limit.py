"""Rate limiting wiring for FastAPI routes.

This module connects the limiter adapter to the HTTP layer:
- Named policies (scan, claim, strict, global), each with its own key prefix
- Client identification from proxy headers plus an optional device fingerprint
- X-RateLimit-* response headers
- The periodic purge of expired counters, run from the app lifespan
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import math
from types import MappingProxyType
from typing import Mapping

from fastapi import Request

from etags.adapters.rate_limit.base import AbstractRateLimiter, RateLimitConfig, RateLimitResult
from etags.adapters.rate_limit.in_memory import FixedWindowRateLimiter
from etags.core.config import settings
from etags.core.errors import RateLimitAppError

logger = logging.getLogger(__name__)

_ONE_MINUTE_MS = 60 * 1000

RATE_LIMITS: Mapping[str, RateLimitConfig] = MappingProxyType(
    {
        # Tag scans: per IP + fingerprint
        "scan": RateLimitConfig(max_requests=30, window_ms=_ONE_MINUTE_MS),
        # Ownership and NFT claims
        "claim": RateLimitConfig(max_requests=10, window_ms=_ONE_MINUTE_MS),
        # Suspicious activity
        "strict": RateLimitConfig(max_requests=5, window_ms=_ONE_MINUTE_MS),
        # Per-IP ceiling across endpoints
        "global": RateLimitConfig(max_requests=100, window_ms=_ONE_MINUTE_MS),
    }
)

DEFAULT_CLIENT_IP = "127.0.0.1"


_limiter: AbstractRateLimiter | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide limiter, creating it on first use."""

    global _limiter
    if _limiter is None:
        _limiter = FixedWindowRateLimiter()
    return _limiter


def set_rate_limiter(limiter: AbstractRateLimiter | None) -> None:
    """Replace the process-wide limiter (``None`` resets to a fresh one lazily)."""

    global _limiter
    _limiter = limiter


def get_policy(name: str) -> RateLimitConfig:
    """Look up a named policy.

    Raises:
        KeyError: If no policy has that name.
    """

    try:
        return RATE_LIMITS[name]
    except KeyError:
        raise KeyError(f"Unknown rate limit policy: {name!r}") from None


def get_client_identifier(ip: str, fingerprint_id: str | None = None) -> str:
    """Build the limiter identity for a caller.

    A device fingerprint separates browser contexts that share one IP.

    Examples:
        >>> get_client_identifier("10.0.0.1")
        '10.0.0.1'
        >>> get_client_identifier("10.0.0.1", "fp-42")
        '10.0.0.1:fp-42'
    """

    if fingerprint_id:
        return f"{ip}:{fingerprint_id}"
    return ip


def get_client_ip(request: Request) -> str:
    """Resolve the caller's IP, preferring proxy headers over the socket peer."""

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return DEFAULT_CLIENT_IP


def build_rate_limit_key(policy_name: str, identifier: str, prefix: str | None = None) -> str:
    """Namespace ``identifier`` so each policy keeps separate counters."""

    return f"{prefix or policy_name}:{identifier}"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Format response headers for a limiter decision.

    ``Retry-After`` is only present when the request was rejected.
    """

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_time / 1000)),
    }
    if not result.success and result.retry_after:
        headers["Retry-After"] = str(result.retry_after)
    return headers


def _hash_limiter_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def enforce_rate_limit(
    policy_name: str,
    identifier: str,
    *,
    prefix: str | None = None,
) -> RateLimitResult | None:
    """Count a request against a named policy.

    Args:
        policy_name: Key into ``RATE_LIMITS``.
        identifier: Caller identity from ``get_client_identifier``.
        prefix: Key namespace; defaults to the policy name.

    Returns:
        The admitted result, or None when rate limiting is disabled.

    Raises:
        RateLimitAppError: 429 when the caller is over budget.
    """

    if not settings.app.rate_limit_enabled:
        return None

    config = get_policy(policy_name)
    key = build_rate_limit_key(policy_name, identifier, prefix)
    result = get_rate_limiter().check(key, config)

    log_extra = {
        "policy": policy_name,
        "key_hash": _hash_limiter_key(key),
        "limit": result.limit,
        "remaining": result.remaining,
        "window_ms": config.window_ms,
    }

    if result.success:
        logger.info("rate_limit.allowed", extra=log_extra)
        return result

    retry_after = result.retry_after or 0
    logger.warning("rate_limit.exceeded", extra={**log_extra, "retry_after_s": retry_after})

    raise RateLimitAppError(
        code="rate_limit_exceeded",
        message=f"Too many requests. Try again in {retry_after} seconds.",
        details={"retry_after": retry_after, "policy": policy_name},
        retry_after=retry_after,
        response_headers=rate_limit_headers(result),
    )


async def run_periodic_sweep(limiter: AbstractRateLimiter, interval_seconds: float) -> None:
    """Purge expired limiter entries every ``interval_seconds`` until cancelled."""

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = limiter.purge_expired()
        except Exception:
            logger.exception("rate_limit.sweep_failed")
            continue
        if removed:
            logger.debug("rate_limit.sweep", extra={"removed": removed})
