"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from etags.core.logging import JsonFormatter, RequestIdFilter, SensitiveDataFilter, clear_request_id, set_request_id


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_redacts_csrf_tokens_and_secrets():
    logger, stream = _capture("test_csrf_redaction")

    logger.info(
        "csrf.debug",
        extra={
            "csrf_token": "abc:1700000000000:sig",
            "auth_secret": "super-secret",
            "policy": "claim",
        },
    )

    output = stream.getvalue()
    assert "abc:1700000000000:sig" not in output
    assert "super-secret" not in output
    assert "[REDACTED]" in output
    assert "claim" in output


def test_redacts_nested_headers():
    logger, stream = _capture("test_nested_headers")

    logger.info(
        "request.headers",
        extra={
            "headers": {
                "X-CSRF-Token": "header-token-value",
                "Cookie": "csrf_token=cookie-token-value",
                "user-agent": "pytest",
            },
        },
    )

    output = stream.getvalue()
    assert "header-token-value" not in output
    assert "cookie-token-value" not in output
    assert "pytest" in output


def test_safe_rate_limit_fields_pass_through():
    logger, stream = _capture("test_safe_fields")

    logger.info(
        "rate_limit.allowed",
        extra={"key_hash": "0123abcd", "remaining": 9, "window_ms": 60000},
    )

    record = json.loads(stream.getvalue())
    assert record["message"] == "rate_limit.allowed"
    assert record["key_hash"] == "0123abcd"
    assert record["remaining"] == 9
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_from_context():
    logger, stream = _capture("test_request_id")

    set_request_id("req-77")
    try:
        logger.warning("csrf.rejected", extra={"reason": "mismatch"})
    finally:
        clear_request_id()

    record = json.loads(stream.getvalue())
    assert record["request_id"] == "req-77"
    assert record["reason"] == "mismatch"
    assert record["level"] == "warning"
