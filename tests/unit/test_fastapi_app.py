"""Unit tests for FastAPI application setup.

Tests cover:
- Application factory creates FastAPI instance
- CORS and request logging middleware are configured
- Health and readiness endpoints
- Error envelope for unexpected failures and missing callers
- Router registration
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from httpx import ASGITransport, AsyncClient

from sprintflow import __version__
from sprintflow.config import SprintflowConfig, WebConfig
from sprintflow.orchestrator.errors import UnauthorizedError
from sprintflow.web.app import create_app
from sprintflow.web.dependencies import get_user_id, ok
from sprintflow.web.middleware import RequestLoggingMiddleware


def _services_with(session_factory: MagicMock) -> MagicMock:
    services = MagicMock()
    services.session_factory = session_factory
    return services


class TestCreateApp:
    """Test application factory function."""

    def test_returns_fastapi_instance(self) -> None:
        app = create_app()
        assert isinstance(app, FastAPI)

    def test_app_has_title_and_version(self) -> None:
        app = create_app()
        assert app.title == "Sprintflow"
        assert app.version == __version__

    def test_app_stores_config_and_services(self) -> None:
        config = SprintflowConfig()
        services = MagicMock()
        app = create_app(config, services=services)
        assert app.state.config is config
        assert app.state.services is services

    def test_services_default_to_none_until_startup(self) -> None:
        app = create_app()
        assert app.state.services is None


class TestMiddleware:
    """Test middleware configuration."""

    def test_cors_uses_config_origins(self) -> None:
        origins = ["https://app.example.com", "https://admin.example.com"]
        app = create_app(SprintflowConfig(web=WebConfig(cors_origins=origins)))

        cors = [m for m in app.user_middleware if m.cls == CORSMiddleware]
        assert len(cors) == 1
        assert cors[0].kwargs["allow_origins"] == origins
        assert cors[0].kwargs["allow_credentials"] is True
        assert cors[0].kwargs["allow_methods"] == ["GET", "POST", "PATCH"]

    def test_logging_middleware_is_registered(self) -> None:
        app = create_app()
        assert any(m.cls == RequestLoggingMiddleware for m in app.user_middleware)


class TestHealthEndpoints:
    """Test liveness and readiness endpoints."""

    @pytest.fixture
    def healthy_app(self) -> FastAPI:
        session = AsyncMock()
        session.execute = AsyncMock(return_value=MagicMock())
        session_factory = MagicMock()
        session_factory.return_value.__aenter__ = AsyncMock(return_value=session)
        session_factory.return_value.__aexit__ = AsyncMock(return_value=None)
        return create_app(services=_services_with(session_factory))

    @pytest.fixture
    def unhealthy_app(self) -> FastAPI:
        session_factory = MagicMock()
        session_factory.return_value.__aenter__ = AsyncMock(
            side_effect=Exception("Database connection failed")
        )
        session_factory.return_value.__aexit__ = AsyncMock(return_value=None)
        return create_app(services=_services_with(session_factory))

    @pytest.mark.asyncio
    async def test_health_returns_ok(self, healthy_app: FastAPI) -> None:
        async with AsyncClient(
            transport=ASGITransport(app=healthy_app), base_url="http://test"
        ) as client:
            response = await client.get("/health/")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert "X-Correlation-ID" in response.headers

    @pytest.mark.asyncio
    async def test_readiness_when_database_healthy(self, healthy_app: FastAPI) -> None:
        async with AsyncClient(
            transport=ASGITransport(app=healthy_app), base_url="http://test"
        ) as client:
            response = await client.get("/health/ready")
        assert response.json() == {"status": "ok", "database": "connected"}

    @pytest.mark.asyncio
    async def test_readiness_when_database_fails(self, unhealthy_app: FastAPI) -> None:
        async with AsyncClient(
            transport=ASGITransport(app=unhealthy_app), base_url="http://test"
        ) as client:
            response = await client.get("/health/ready")
        assert response.status_code == 503
        assert response.json() == {"status": "unhealthy", "database": "disconnected"}


class TestErrorEnvelope:
    """Test the failure envelope for unexpected errors."""

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic_500(self) -> None:
        services = MagicMock()
        services.sprint_gate.approve = AsyncMock(side_effect=RuntimeError("db exploded"))
        app = create_app(services=services)

        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        ) as client:
            response = await client.post(
                "/sprints/00000000-0000-0000-0000-000000000001/approve",
                headers={"X-User-ID": "owner-1"},
            )

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": {"code": "INTERNAL_ERROR", "message": "Internal server error"},
        }
        assert "db exploded" not in response.text


class TestDependencies:
    """Test shared route dependencies."""

    def test_user_id_is_stripped(self) -> None:
        assert get_user_id("  owner-1 ") == "owner-1"

    @pytest.mark.parametrize("header", [None, "", "   "])
    def test_missing_user_id_is_unauthorized(self, header: str | None) -> None:
        with pytest.raises(UnauthorizedError):
            get_user_id(header)

    def test_ok_wraps_payload(self) -> None:
        assert ok({"id": 1}) == {"success": True, "data": {"id": 1}}


class TestRouterRegistration:
    """Test that routers are properly registered."""

    def test_routes_exist(self) -> None:
        app = create_app()
        routes = {route.path for route in app.routes}
        assert {
            "/health/",
            "/health/ready",
            "/projects/",
            "/projects/{project_id}/status",
            "/projects/{project_id}/kickoff",
            "/sprints/{sprint_id}",
            "/sprints/{sprint_id}/approve",
            "/sprints/{sprint_id}/reinitiate",
            "/workflow/transition",
        } <= routes
