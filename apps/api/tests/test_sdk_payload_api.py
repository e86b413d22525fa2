"""
Tests for the SDK payload endpoint.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from flagforge.core.features.encryption import decrypt_payload
from flagforge.models import APIKeyType, Organization

from conftest import create_feature


@pytest.mark.asyncio
async def test_missing_key(client: AsyncClient):
    """Blank or absent keys are a bad request."""
    for path in ("/api/sdk-payload/%20", "/api/sdk-payload"):
        response = await client.get(path)
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing API key in request"


@pytest.mark.asyncio
async def test_unknown_key(client: AsyncClient):
    response = await client.get("/api/sdk-payload/cli_doesnotexist")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_server_key_cannot_fetch_payload(
    client: AsyncClient,
    api_key_factory,
    test_org: Organization,
):
    full_key, _ = await api_key_factory.create(test_org, APIKeyType.SERVER)
    response = await client.get(f"/api/sdk-payload/{full_key}")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_key(client: AsyncClient, api_key_factory, test_org: Organization):
    full_key, _ = await api_key_factory.create(
        test_org,
        expires_at=datetime.now(timezone.utc) - timedelta(days=1),
    )
    response = await client.get(f"/api/sdk-payload/{full_key}")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_payload_end_to_end(
    client: AsyncClient,
    management_headers: dict,
    sdk_key: str,
):
    """A stored rollout rule comes back compiled, coverage clamped."""
    await create_feature(client, management_headers)

    response = await client.get(f"/api/sdk-payload/{sdk_key}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == 200
    assert data["features"] == {
        "show-banner": {
            "defaultValue": True,
            "rules": [{"force": False, "coverage": 1, "hashAttribute": "id"}],
        }
    }
    assert datetime.fromisoformat(data["dateUpdated"])
    assert "encryptedFeatures" not in data


@pytest.mark.asyncio
async def test_payload_uses_key_environment(
    client: AsyncClient,
    management_headers: dict,
    api_key_factory,
    test_org: Organization,
):
    """Features disabled in the key's environment are left out."""
    await create_feature(client, management_headers)
    staging_key, _ = await api_key_factory.create(test_org, environment="staging")

    response = await client.get(f"/api/sdk-payload/{staging_key}")

    assert response.json()["features"] == {}


@pytest.mark.asyncio
async def test_environment_project_scoping(
    client: AsyncClient,
    org_factory,
    api_key_factory,
):
    """Environment project restrictions apply before features are loaded."""
    org = await org_factory.create()
    web = await org_factory.create_project(org, "Web")
    app = await org_factory.create_project(org, "App")
    org.settings = {"environments": [{"id": "production", "projects": [str(web.id)]}]}
    await org_factory.db.commit()

    server_key, _ = await api_key_factory.create(org, APIKeyType.SERVER)
    headers = {"Authorization": f"Bearer {server_key}"}
    await create_feature(client, headers, key="web-flag", project=str(web.id))
    await create_feature(client, headers, key="app-flag", project=str(app.id))
    await create_feature(client, headers, key="global-flag")

    all_key, _ = await api_key_factory.create(org, environment="production")
    response = await client.get(f"/api/sdk-payload/{all_key}")
    assert set(response.json()["features"]) == {"web-flag"}

    app_key, _ = await api_key_factory.create(
        org, environment="production", projects=[str(app.id)],
    )
    response = await client.get(f"/api/sdk-payload/{app_key}")
    assert response.status_code == 200
    assert response.json()["features"] == {}


@pytest.mark.asyncio
async def test_key_project_scope_without_environment_restriction(
    client: AsyncClient,
    org_factory,
    api_key_factory,
):
    org = await org_factory.create()
    web = await org_factory.create_project(org, "Web")
    server_key, _ = await api_key_factory.create(org, APIKeyType.SERVER)
    headers = {"Authorization": f"Bearer {server_key}"}
    await create_feature(client, headers, key="web-flag", project=str(web.id))
    await create_feature(client, headers, key="global-flag")

    web_key, _ = await api_key_factory.create(org, projects=[str(web.id)])
    response = await client.get(f"/api/sdk-payload/{web_key}")

    assert set(response.json()["features"]) == {"web-flag"}


@pytest.mark.asyncio
async def test_encrypted_payload(
    client: AsyncClient,
    management_headers: dict,
    api_key_factory,
    test_org: Organization,
):
    """Encrypted connections get an empty features map plus the ciphertext."""
    await create_feature(client, management_headers)
    full_key, api_key = await api_key_factory.create(test_org, encrypt_payload=True)

    response = await client.get(f"/api/sdk-payload/{full_key}")

    data = response.json()
    assert data["features"] == {}
    decrypted = json.loads(decrypt_payload(data["encryptedFeatures"], api_key.encryption_key))
    assert decrypted["show-banner"]["defaultValue"] is True


@pytest.mark.asyncio
async def test_overflowing_number_is_strict_json(
    client: AsyncClient,
    management_headers: dict,
    api_key_factory,
    test_org: Organization,
):
    """Numbers too large for a float come out as null, never Infinity."""
    await create_feature(
        client,
        management_headers,
        key="limits",
        valueType="json",
        defaultValue='{"max": 1e400}',
        environmentSettings={
            "production": {"enabled": True, "rules": [{"type": "force", "value": "1e400"}]},
        },
    )
    full_key, api_key = await api_key_factory.create(test_org, encrypt_payload=True)

    response = await client.get(f"/api/sdk-payload/{full_key}")

    assert response.status_code == 200
    plaintext = decrypt_payload(response.json()["encryptedFeatures"], api_key.encryption_key)
    assert "Infinity" not in plaintext

    def reject(constant):
        raise ValueError(constant)

    limits = json.loads(plaintext, parse_constant=reject)["limits"]
    assert limits["defaultValue"] == {"max": None}
    assert limits["rules"][0]["force"] is None


@pytest.mark.asyncio
async def test_feature_change_invalidates_cached_payload(
    client: AsyncClient,
    management_headers: dict,
    sdk_key: str,
    payload_cache,
):
    await create_feature(client, management_headers)
    first = await client.get(f"/api/sdk-payload/{sdk_key}")
    assert "show-banner" in first.json()["features"]
    assert len(payload_cache) == 1

    response = await client.post("/api/features/show-banner/archive", headers=management_headers)
    assert response.status_code == 200

    second = await client.get(f"/api/sdk-payload/{sdk_key}")
    assert second.json()["features"] == {}

