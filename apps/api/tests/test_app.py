"""
Tests for application-level endpoints and middleware.
"""

import pytest
from httpx import AsyncClient

from flagforge.api.middleware.logging import redact_path


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_health_detailed(client: AsyncClient):
    response = await client.get("/health/detailed")

    assert response.status_code == 200
    components = response.json()["components"]
    assert components["database"]["status"] == "healthy"
    assert components["cache"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

    response = await client.get("/health")
    assert len(response.headers["X-Request-ID"]) == 32


@pytest.mark.parametrize("path,expected", [
    ("/api/sdk-payload/cli_abcdefghijkl", "/api/sdk-payload/cli_abcd***"),
    ("/api/sdk-payload/short", "/api/sdk-payload/short***"),
    ("/api/features/show-banner", "/api/features/show-banner"),
])
def test_redact_path(path, expected):
    assert redact_path(path) == expected
