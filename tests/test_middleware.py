"""Middleware tests — request ID and error handling."""

import pytest
from httpx import AsyncClient

from daybook.errors import DataAccessError
from tests.conftest import ReminderWorld


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    """Unknown paths return 404 with JSON body."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.headers["content-type"] == "application/json"
    assert response.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_validation_error_shape(client: AsyncClient, world: ReminderWorld) -> None:
    world.add_user(1)
    response = await client.put("/api/v1/users/1/notification-settings", json={"email_enabled": "maybe"})
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert data["errors"][0]["loc"][-1] == "email_enabled"


@pytest.mark.asyncio
async def test_store_outage_returns_503(client: AsyncClient, world: ReminderWorld, monkeypatch) -> None:
    """DataAccessError from a store maps to 503 JSON."""
    world.add_user(1)

    async def _down(user_id):
        raise DataAccessError("settings store unreachable")

    monkeypatch.setattr(world.settings_store, "get", _down)
    response = await client.get("/api/v1/users/1/notification-settings")
    assert response.status_code == 503
    assert response.json() == {"detail": "Service temporarily unavailable"}
