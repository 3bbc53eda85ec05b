"""Tests for global exception handlers.

Validates that domain errors map to the right HTTP status codes with a
consistent error body, and that unexpected errors leak nothing.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from httprate_redis.core.errors import (
    AppError,
    BackendAppError,
    ConfigurationAppError,
    ValidationAppError,
)
from httprate_redis.core.exception_handlers import setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(code="invalid_key", message="Rate limit key is empty")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_key"
        assert data["error"]["message"] == "Rate limit key is empty"
        assert "request_id" in data["error"]

    def test_backend_error_returns_503_with_phase(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-backend")
        async def test_endpoint():
            raise BackendAppError(
                code="redis_expire_failed",
                message="Redis expire failed: READONLY",
                details={"phase": "expire", "backend": "redis"},
            )

        response = client.get("/test-backend")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
        data = response.json()
        assert data["error"]["code"] == "redis_expire_failed"
        assert data["error"]["details"]["phase"] == "expire"

    def test_configuration_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-config")
        async def test_endpoint():
            raise ConfigurationAppError(code="redis_unreachable", message="Unable to connect")

        response = client.get("/test-config")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "redis_unreachable"
        assert "details" not in response.json()["error"]


def test_backend_error_exposes_phase() -> None:
    exc = BackendAppError(code="redis_read_failed", message="x", details={"phase": "read"})

    assert exc.phase == "read"
    assert str(exc) == "x"
    assert BackendAppError(code="c", message="m").phase is None


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_hides_details(self):
        from httprate_redis.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: redis password is hunter2")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "hunter2" not in data["error"]["message"]
        assert "RuntimeError" not in bytes(response.body).decode()

    def test_setup_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers
