"""
Tests for the /health endpoint.

Verifies:
  - Returns HTTP 200 with status="ok" (API liveness check)
  - Returns expected JSON schema
  - Reports mock classifier mode in tests
  - Root / endpoint returns API metadata
"""

import pytest


@pytest.mark.asyncio
async def test_health_returns_200(client):
    """Health endpoint must always return 200 if the API process is alive."""
    response = await client.get("/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_health_response_schema(client):
    response = await client.get("/health")
    data = response.json()

    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert "active_sessions" in data
    assert data["environment"] == "test"


@pytest.mark.asyncio
async def test_health_reports_mock_mode(client):
    """AI_MOCK_MODE=true in conftest, so the classifier must report mock."""
    response = await client.get("/health")
    assert response.json()["classifier_mode"] == "mock"


@pytest.mark.asyncio
async def test_root_endpoint(client):
    """Root / must return API metadata with status=running."""
    response = await client.get("/")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "running"
    assert data["name"] == "Veritas Lens API"
    assert "version" in data


@pytest.mark.asyncio
async def test_docs_available_in_test_env(client):
    """OpenAPI docs are disabled only when ENVIRONMENT=production."""
    response = await client.get("/docs")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_unknown_route_returns_404(client):
    response = await client.get("/does-not-exist")
    assert response.status_code == 404
