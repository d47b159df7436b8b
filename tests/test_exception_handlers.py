"""Tests for global exception handlers.

Validates that every error type maps to its HTTP status code with a
consistent JSON body, and that the fallback never leaks a stack trace.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    ConflictAppError,
    FieldValidationAppError,
    NotFoundAppError,
    RateLimitAppError,
    ValidationAppError,
)
from app.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def handlers_client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


def _body(response) -> dict:
    response_body = response.body if isinstance(response.body, bytes) else bytes(response.body)
    return json.loads(response_body.decode())


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    @pytest.mark.parametrize(
        "error,status",
        [
            (ValidationAppError(code="bad", message="Bad input"), 400),
            (AuthenticationAppError(code="invalid_api_key", message="Nope"), 401),
            (NotFoundAppError(code="user_not_found", message="User not found"), 404),
            (ConflictAppError(code="email_taken", message="Email already in use"), 409),
            (RateLimitAppError(code="rate_limited", message="Slow down"), 429),
        ],
    )
    def test_error_maps_to_status(
        self, handlers_client: TestClient, app_with_handlers: FastAPI, error: AppError, status: int
    ) -> None:
        @app_with_handlers.get("/raise")
        async def raise_error():
            raise error

        response = handlers_client.get("/raise")

        assert response.status_code == status
        data = response.json()
        assert data["error"] == error.message
        assert data["code"] == error.code
        assert "request_id" in data

    def test_field_errors_are_listed(self, handlers_client: TestClient, app_with_handlers: FastAPI) -> None:
        @app_with_handlers.get("/fields")
        async def raise_error():
            raise FieldValidationAppError(
                code="validation_failed",
                message="Validation failed",
                errors=[{"field": "name", "message": "Name must be 2-50 characters"}],
            )

        data = handlers_client.get("/fields").json()

        assert data["errors"] == [{"field": "name", "message": "Name must be 2-50 characters"}]

    def test_details_included_when_provided(self, handlers_client: TestClient, app_with_handlers: FastAPI) -> None:
        @app_with_handlers.get("/details")
        async def raise_error():
            raise NotFoundAppError(code="user_not_found", message="User not found", details={"user_id": 7})

        assert handlers_client.get("/details").json()["details"] == {"user_id": 7}

    def test_rate_limit_headers_are_forwarded(self, handlers_client: TestClient, app_with_handlers: FastAPI) -> None:
        @app_with_handlers.get("/limited")
        async def raise_error():
            raise RateLimitAppError(code="rate_limited", message="Slow down", headers={"Retry-After": "12"})

        assert handlers_client.get("/limited").headers["Retry-After"] == "12"


class TestRouteNotFound:
    def test_unknown_path(self, handlers_client: TestClient) -> None:
        response = handlers_client.delete("/missing")

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "Route not found"
        assert data["path"] == "/missing"
        assert data["method"] == "DELETE"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI) -> None:
        assert Exception in app_with_handlers.exception_handlers
        assert AppError in app_with_handlers.exception_handlers

    def test_general_exception_handler_includes_message(self) -> None:
        request = AsyncMock()
        request.url.path = "/users"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, RuntimeError("boom")))

        assert response.status_code == 500
        data = _body(response)
        assert data["error"] == "Internal server error"
        assert data["message"] == "boom"

    def test_general_exception_handler_hides_message_when_configured(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings.app, "expose_error_details", False)
        request = AsyncMock()
        request.url.path = "/users"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, RuntimeError("database down")))

        assert "database down" not in _body(response)["message"]

    def test_general_exception_handler_never_leaks_stack_trace(self) -> None:
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error")))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "File \"" not in response_text
        assert "ValueError" not in response_text


def test_multiple_handler_setups_does_not_fail() -> None:
    app = FastAPI()

    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers
