"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

from app.core.errors import AppError, InvalidConfigError, ValidationAppError
from app.core.exception_handlers import setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_invalid_config_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-config")
        async def test_endpoint():
            raise InvalidConfigError(
                code="invalid_config",
                message="Limit must be greater than 0",
                details={"field": "limit", "min_value": 1, "actual_value": 0},
            )

        response = client.get("/test-config")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_config"
        assert data["error"]["message"] == "Limit must be greater than 0"
        assert data["error"]["details"]["field"] == "limit"
        assert "request_id" in data["error"]

    def test_validation_error_without_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(code="test", message="test")

        data = client.get("/test-validation").json()

        assert set(data["error"]) == {"code", "message", "request_id"}

    def test_other_app_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-app-error")
        async def test_endpoint():
            raise AppError(code="store_unavailable", message="Limiter store unavailable")

        response = client.get("/test-app-error")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "store_unavailable"

    def test_error_str_is_message(self):
        exc = InvalidConfigError(code="invalid_config", message="Window duration must be greater than 0")

        assert str(exc) == "Window duration must be greater than 0"
        assert isinstance(exc, ValidationAppError)


class TestRequestValidationHandler:
    def test_missing_body_field_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        from pydantic import BaseModel

        class Body(BaseModel):
            limit: int

        @app_with_handlers.post("/test-body")
        async def test_endpoint(body: Body):
            return body

        response = client.post("/test-body", json={})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_request"
        assert error["details"]["context"]["fields"] == ["limit"]

    def test_handler_registered(self, app_with_handlers: FastAPI):
        assert RequestValidationError in app_with_handlers.exception_handlers


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_logic(self):
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: lock table corrupted")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "lock table" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("details")))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text

    def test_setup_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers
