"""Tests for global exception handlers.

Validates that every AppError maps to its HTTP status with the shared error
body, and that unexpected exceptions never leak details.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from etags.core.errors import (
    AppError,
    CSRFAppError,
    RateLimitAppError,
    ServiceUnavailableAppError,
    ValidationAppError,
)
from etags.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/validation")
        async def endpoint():
            raise ValidationAppError(
                code="missing_fields",
                message="Missing required fields: tagCode",
                details={"fields": ["tagCode"]},
            )

        response = client.get("/validation")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "missing_fields"
        assert error["details"]["fields"] == ["tagCode"]
        assert "request_id" in error

    def test_csrf_error_returns_403_without_details(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.post("/csrf")
        async def endpoint():
            raise CSRFAppError(code="csrf_invalid", message="Invalid or expired CSRF token.")

        response = client.post("/csrf")

        assert response.status_code == 403
        assert "details" not in response.json()["error"]

    def test_rate_limit_error_returns_429_with_headers(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.post("/limited")
        async def endpoint():
            raise RateLimitAppError(
                code="rate_limit_exceeded",
                message="Too many requests. Try again in 12 seconds.",
                details={"retry_after": 12},
                retry_after=12,
                response_headers={
                    "Retry-After": "12",
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": "1700000060",
                },
            )

        response = client.post("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "12"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1700000060"
        assert response.json()["error"]["details"]["retry_after"] == 12

    def test_service_unavailable_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/down")
        async def endpoint():
            raise ServiceUnavailableAppError(code="tag_service_unavailable", message="down")

        assert client.get("/down").status_code == 503


class TestGeneralExceptionHandler:
    def test_handlers_registered(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_never_leaks_exception_details(self):
        request = AsyncMock()
        request.url.path = "/api/scan"
        request.method = "POST"
        request.state.request_id = "req-500"

        exc = RuntimeError("secret=hunter2 while signing token")
        response = asyncio.run(general_exception_handler(request, exc))

        text = bytes(response.body).decode()
        data = json.loads(text)
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert data["error"]["request_id"] == "req-500"
        assert "hunter2" not in text
        assert "RuntimeError" not in text
        assert "Traceback" not in text
