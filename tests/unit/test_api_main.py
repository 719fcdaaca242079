"""Tests for FastAPI application, exception handlers and security headers."""

import pytest
from httpx import ASGITransport, AsyncClient

from memberlink.core.errors import (
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from memberlink.main import create_app


@pytest.fixture
def app():
    """Create test application instance."""
    return create_app()


@pytest.fixture
async def client(app):
    """Create async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    async def test_health_returns_healthy_status(self, client):
        """Health endpoint should return 200 and healthy status."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAPIVersioning:
    """Tests for API versioning."""

    async def test_v1_router_mounted(self, client):
        """Unknown v1 paths return 404, not a router error."""
        response = await client.get("/api/v1/nonexistent")
        assert response.status_code == 404


class TestExceptionHandlers:
    """APIError subclasses render into the error envelope."""

    @pytest.mark.parametrize(
        ("exc", "status_code", "code"),
        [
            (ValidationError("Invalid input"), 400, "VALIDATION_ERROR"),
            (UnauthorizedError(), 401, "UNAUTHORIZED"),
            (NotFoundError("Member", "123"), 404, "NOT_FOUND"),
            (ConflictError("TOKEN_ALREADY_USED", "used"), 409, "TOKEN_ALREADY_USED"),
            (StoreUnavailableError("insert"), 503, "STORE_UNAVAILABLE"),
        ],
    )
    async def test_api_error_envelope(self, app, client, exc, status_code, code):
        @app.get("/test/raise")
        async def raise_error():
            raise exc

        response = await client.get("/test/raise")

        assert response.status_code == status_code
        assert response.json()["error"]["code"] == code

    async def test_not_found_message_names_resource(self, app, client):
        @app.get("/test/not-found")
        async def raise_not_found():
            raise NotFoundError("Member", "123")

        response = await client.get("/test/not-found")

        assert response.json()["error"]["message"] == "Member with id '123' not found"

    async def test_store_unavailable_hides_operation(self, app, client):
        """Driver and operation details never reach the client."""

        @app.get("/test/store-down")
        async def raise_store_down():
            raise StoreUnavailableError("mark_used_if_live")

        response = await client.get("/test/store-down")

        assert "mark_used_if_live" not in response.text

    async def test_unhandled_exception_returns_internal_error(self, app):
        """Unexpected failures render the INTERNAL_ERROR envelope without details."""

        @app.get("/test/crash")
        async def crash():
            raise RuntimeError("database password is hunter2")

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/test/crash")

        assert response.status_code == 500
        assert response.json()["error"] == {
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "details": None,
        }

    async def test_request_validation_returns_400(self, app, client):
        """Pydantic validation errors use VALIDATION_ERROR with details."""

        @app.get("/test/typed/{item_id}")
        async def typed(item_id: int):
            return {"item_id": item_id}

        response = await client.get("/test/typed/not-a-number")

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["loc"] == ["path", "item_id"]


class TestSecurityHeaders:
    """SecurityHeadersMiddleware."""

    async def test_common_headers(self, client):
        response = await client.get("/health")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"

    async def test_claim_endpoints_send_no_referrer(self, client):
        """Claim URLs carry the secret, so the Referer must never leak it."""
        response = await client.get("/api/v1/claims/sign-declarations")

        assert response.headers["Referrer-Policy"] == "no-referrer"
        assert response.headers["Cache-Control"] == "no-store, max-age=0"
