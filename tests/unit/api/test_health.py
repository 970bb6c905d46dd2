"""
Unit Tests for Health Check Endpoints

Tests the /api/v1/health and /api/v1/ready endpoints.
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from sqlstudio import __version__
from sqlstudio.api.main import app, app_state


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


class TestHealthEndpoint:
    """Test suite for health check endpoint."""

    def test_health_returns_correct_structure(self, client):
        """Health returns status, version and timestamp."""
        response = client.get("/api/v1/health")
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert isinstance(data["timestamp"], str)

    def test_root(self, client):
        data = client.get("/").json()
        assert data["name"] == "SQL Studio API"
        assert data["docs"] == "/docs"


class TestReadinessEndpoint:
    """Test suite for readiness check endpoint."""

    def test_ready_when_initialized(self, client):
        """200 when the registry exists and tools are registered."""
        app_state["connections"] = MagicMock()
        try:
            response = client.get("/api/v1/ready")
        finally:
            app_state["connections"] = None

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"] == {"connections": True, "tools": True}

    def test_not_ready_without_registry(self, client):
        """503 before the lifespan has built the registry."""
        app_state["connections"] = None

        response = client.get("/api/v1/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"
        assert response.json()["checks"]["connections"] is False

    def test_not_ready_without_tools(self, client):
        app_state["connections"] = MagicMock()
        try:
            with patch("sqlstudio.api.routes.health.ToolCatalog.list_definitions", return_value=[]):
                response = client.get("/api/v1/ready")
        finally:
            app_state["connections"] = None

        assert response.status_code == 503
        assert response.json()["checks"]["tools"] is False
