"""Tests for health endpoint and error envelope."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test health endpoint returns ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_unknown_route_is_404(client: AsyncClient):
    response = await client.get("/v1/unknown")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_query_type_errors_use_structured_400(client: AsyncClient):
    """FastAPI query validation errors are reshaped into the error envelope."""
    response = await client.get("/v1/offers", params={"limit": "abc"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["detail"]["errors"][0]["loc"] == ["query", "limit"]
