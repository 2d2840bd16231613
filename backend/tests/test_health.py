"""Tests for health endpoint."""

import pytest
from fastapi.testclient import TestClient

from sendany.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


def test_health_endpoint(client: TestClient) -> None:
    """Test that health endpoint returns expected response."""
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["database"] == "connected"
    assert data["google_oauth_configured"] is True
    assert data["reaper_running"] is False
