"""CSRF protection for state-changing endpoints.

Double-submit cookie pattern with signed tokens: the server sets an HttpOnly
``csrf_token`` cookie and hands the same value to client code, which echoes
it in the ``x-csrf-token`` header. A request passes only when header and
cookie match exactly, the HMAC-SHA256 signature verifies against the server
secret, and the token is younger than the validity window.

Token wire format::

    {random_hex}:{issued_at_ms}:{signature_hex}

Validity depends only on the secret, so tokens survive restarts as long as
the configured secret does not change. There is no revocation: a token dies
by expiring or by its cookie being overwritten with a fresh one.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response

from etags.core.config import settings
from etags.core.errors import CSRFAppError

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "x-csrf-token"

TOKEN_RANDOM_BYTES = 32

CSRF_ERROR_MISSING = "CSRF token missing"
CSRF_ERROR_INVALID = "Invalid CSRF token"

# Shown to clients for every failure so probes can't tell the checks apart
CSRF_PUBLIC_MESSAGE = "Invalid or expired CSRF token. Please refresh the page and try again."


class CSRFTokenSigner:
    """Issue and verify signed, time-bounded CSRF tokens.

    Args:
        secret: HMAC key. Never logged.
        max_age_seconds: Validity window measured from issuance.
        clock: Time source returning UNIX time in seconds.
    """

    def __init__(
        self,
        secret: str,
        *,
        max_age_seconds: int = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("secret must be a non-empty string")
        if max_age_seconds < 1:
            raise ValueError("max_age_seconds must be >= 1")
        self._key = secret.encode("utf-8")
        self._max_age_ms = max_age_seconds * 1000
        self._clock = clock

    def __repr__(self) -> str:
        return f"CSRFTokenSigner(max_age_seconds={self._max_age_ms // 1000})"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def sign(self, random_hex: str, issued_at_ms: int) -> str:
        """Return the hex HMAC-SHA256 of ``"{random_hex}:{issued_at_ms}"``."""
        message = f"{random_hex}:{issued_at_ms}".encode("utf-8")
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def issue(self) -> str:
        """Create a new signed token stamped with the current time."""
        random_hex = secrets.token_hex(TOKEN_RANDOM_BYTES)
        issued_at_ms = self._now_ms()
        return f"{random_hex}:{issued_at_ms}:{self.sign(random_hex, issued_at_ms)}"

    def inspect(self, token: str) -> str | None:
        """Verify ``token`` and return the failure reason, or None if valid.

        Reasons: ``malformed``, ``expired``, ``bad_signature``.
        """
        parts = token.split(":")
        if len(parts) != 3:
            return "malformed"

        random_hex, timestamp_str, signature = parts
        if not random_hex or not signature or not (timestamp_str.isascii() and timestamp_str.isdigit()):
            return "malformed"

        issued_at_ms = int(timestamp_str)
        if self._now_ms() - issued_at_ms > self._max_age_ms:
            return "expired"

        expected = self.sign(random_hex, issued_at_ms)
        if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
            return "bad_signature"
        return None

    def verify(self, token: str) -> bool:
        return self.inspect(token) is None


@dataclass(frozen=True)
class CSRFCheckResult:
    """Outcome of ``check_csrf``.

    ``error`` is safe to show to callers; ``reason`` is for server logs only.
    """

    valid: bool
    error: str | None = None
    reason: str | None = None


_signer: CSRFTokenSigner | None = None


def get_signer() -> CSRFTokenSigner:
    """Return the process-wide signer built from settings."""

    global _signer
    if _signer is None:
        _signer = CSRFTokenSigner(
            settings.csrf.secret,
            max_age_seconds=settings.csrf.max_age_seconds,
        )
    return _signer


def set_signer(signer: CSRFTokenSigner | None) -> None:
    """Replace the process-wide signer (``None`` rebuilds it from settings lazily)."""

    global _signer
    _signer = signer


def get_csrf_header_name() -> str:
    """Header clients must echo the token in."""

    return CSRF_HEADER_NAME


def _cookie_secure() -> bool:
    if settings.csrf.cookie_secure is not None:
        return settings.csrf.cookie_secure
    return settings.is_production


def generate_csrf_token(response: Response) -> str:
    """Issue a token, set it as the CSRF cookie on ``response`` and return it."""

    token = get_signer().issue()
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        max_age=settings.csrf.max_age_seconds,
        path="/",
        secure=_cookie_secure(),
        httponly=True,
        samesite="strict",
    )
    logger.info("csrf.issued")
    return token


def get_csrf_token(request: Request) -> str | None:
    """Return the CSRF cookie value for ``request``, if any."""

    return request.cookies.get(CSRF_COOKIE_NAME) or None


def _failure_reason(header_token: str | None, cookie_token: str | None) -> str | None:
    if not header_token:
        return "missing_header"
    if not cookie_token:
        return "missing_cookie"
    if not hmac.compare_digest(header_token.encode("utf-8"), cookie_token.encode("utf-8")):
        return "mismatch"
    return get_signer().inspect(cookie_token)


def validate_csrf_token(header_token: str | None, cookie_token: str | None) -> bool:
    """Return True only if the header token equals the cookie token and verifies.

    Args:
        header_token: Value echoed by the client in ``x-csrf-token``.
        cookie_token: Value of the ``csrf_token`` cookie on the same request.
    """

    return _failure_reason(header_token, cookie_token) is None


def check_csrf(request: Request) -> CSRFCheckResult:
    """Check the CSRF header of ``request`` against its cookie."""

    header_token = request.headers.get(CSRF_HEADER_NAME)
    if not header_token:
        return CSRFCheckResult(valid=False, error=CSRF_ERROR_MISSING, reason="missing_header")

    reason = _failure_reason(header_token, get_csrf_token(request))
    if reason is not None:
        return CSRFCheckResult(valid=False, error=CSRF_ERROR_INVALID, reason=reason)

    return CSRFCheckResult(valid=True)


async def require_csrf(request: Request) -> None:
    """FastAPI dependency rejecting requests that fail the CSRF check.

    Usage:
        @router.post("/api/scan/claim", dependencies=[Depends(require_csrf)])

    Raises:
        CSRFAppError: 403 with a generic message; the specific reason is logged.
    """

    result = check_csrf(request)
    if result.valid:
        return

    logger.warning(
        "csrf.rejected",
        extra={
            "reason": result.reason,
            "error_detail": result.error,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    raise CSRFAppError(code="csrf_invalid", message=CSRF_PUBLIC_MESSAGE)
