"""Health endpoint tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from daybook.database import get_session


@pytest.fixture
def fake_db(app):
    """Stand-in session for /ready's SELECT 1."""
    session = MagicMock()
    session.execute = AsyncMock(return_value=MagicMock(scalar=MagicMock(return_value=1)))

    async def _session():
        yield session

    app.dependency_overrides[get_session] = _session
    yield session
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_readiness(client: AsyncClient, fake_db, monkeypatch) -> None:
    """GET /ready reports database, redis and scheduler checks."""
    redis = AsyncMock()
    monkeypatch.setattr("daybook.health.router.get_redis", lambda: redis)

    response = await client.get("/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok", "redis": "ok", "scheduler": "disabled"}


@pytest.mark.asyncio
async def test_readiness_degraded_without_redis(client: AsyncClient, fake_db) -> None:
    """Redis not initialized → degraded, still 200."""
    response = await client.get("/ready")
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["redis"].startswith("error")


@pytest.mark.asyncio
async def test_readiness_reports_stopped_scheduler(app, client: AsyncClient, fake_db, monkeypatch) -> None:
    monkeypatch.setattr("daybook.health.router.get_redis", lambda: AsyncMock())
    app.state.scheduler_handle = MagicMock(running=False)
    data = (await client.get("/ready")).json()
    assert data["checks"]["scheduler"] == "stopped"
    assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    """GET /version returns version and environment."""
    response = await client.get("/version")
    assert response.status_code == 200
    data = response.json()
    assert data["version"] == "0.1.0"
    assert "environment" in data
