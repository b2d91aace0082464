"""Tests for health check endpoints and request plumbing."""

import pytest
from httpx import AsyncClient

from keystone.core.errors import InfrastructureError


pytestmark = pytest.mark.integration


async def test_liveness_endpoint(client: AsyncClient):
    """Test that liveness endpoint returns 200."""
    response = await client.get("/health/live")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "alive"


async def test_readiness_endpoint(client: AsyncClient):
    """Test that readiness endpoint returns 200 with healthy checks."""
    response = await client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] == "ok"


async def test_readiness_degraded(app, client: AsyncClient, monkeypatch: pytest.MonkeyPatch):
    """A failing store makes readiness answer 503 instead of raising."""

    async def unavailable() -> None:
        raise InfrastructureError()

    monkeypatch.setattr(app.state.database, "ping", unavailable)

    response = await client.get("/health/ready")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"


async def test_info_endpoint(client: AsyncClient):
    """Test that info endpoint returns application metadata."""
    response = await client.get("/info")

    assert response.status_code == 200
    data = response.json()
    assert data["app"] == "Keystone"
    assert data["environment"] == "testing"


async def test_request_id_generated(client: AsyncClient):
    response = await client.get("/health/live")

    assert response.headers["X-Request-ID"]


async def test_request_id_propagated(client: AsyncClient):
    response = await client.get("/health/live", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


async def test_problem_detail_carries_trace_id(client: AsyncClient):
    response = await client.get("/api/v1/auth/me", headers={"X-Request-ID": "req-456"})

    assert response.status_code == 401
    assert response.json()["trace_id"] == "req-456"
