"""
Pytest fixtures for testing.

Provides:
- Async database session on an in-memory SQLite engine
- Test client with database and payload cache overrides
- Factory fixtures for organizations, projects and API keys
- Feature builders for compiler tests
"""

from typing import Any, AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from flagforge.main import app
from flagforge.models import Base, Organization, Project, APIKey, APIKeyType
from flagforge.core.features import models as feature_models  # noqa: F401  registers tables
from flagforge.core.features.dependencies import get_payload_cache
from flagforge.core.features.interfaces import (
    FeatureEnvironment,
    FeatureInterface,
    FeatureRule,
)
from flagforge.api.dependencies.database import get_db
from flagforge.implementations.cache.memory import MemoryCacheBackend
from flagforge.schemas.api_key import APIKeyCreate
from flagforge.services.api_key import APIKeyService


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Create database session with automatic rollback.

    Each test gets a fresh session that's rolled back after.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def payload_cache() -> MemoryCacheBackend:
    """Fresh compiled payload cache per test."""
    return MemoryCacheBackend(default_ttl=60)


@pytest_asyncio.fixture(scope="function")
async def client(
    db: AsyncSession,
    payload_cache: MemoryCacheBackend,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database session and cache overrides.
    """

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payload_cache] = lambda: payload_cache

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============ Factory Fixtures ============


class OrgFactory:
    """Factory for creating test organizations and projects."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        name: str = "Test Org",
        environments: list[dict[str, Any]] | None = None,
    ) -> Organization:
        """Create an organization in the database."""
        org = Organization(
            name=name,
            slug=f"org-{uuid4().hex[:8]}",
            settings={"environments": environments or []},
        )
        self.db.add(org)
        await self.db.commit()
        await self.db.refresh(org)
        return org

    async def create_project(self, org: Organization, name: str = "Web") -> Project:
        project = Project(org_id=org.id, name=name)
        self.db.add(project)
        await self.db.commit()
        await self.db.refresh(project)
        return project


class APIKeyFactory:
    """Factory for creating API keys; returns (full_key, record)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        org: Organization,
        key_type: APIKeyType = APIKeyType.CLIENT,
        **kwargs: Any,
    ) -> tuple[str, APIKey]:
        data = APIKeyCreate(name=f"{key_type.value} key", key_type=key_type, **kwargs)
        full_key, api_key = await APIKeyService(self.db).create(org.id, data)
        await self.db.commit()
        return full_key, api_key


@pytest_asyncio.fixture
async def org_factory(db: AsyncSession) -> OrgFactory:
    """Fixture that provides OrgFactory."""
    return OrgFactory(db)


@pytest_asyncio.fixture
async def api_key_factory(db: AsyncSession) -> APIKeyFactory:
    """Fixture that provides APIKeyFactory."""
    return APIKeyFactory(db)


@pytest_asyncio.fixture
async def test_org(org_factory: OrgFactory) -> Organization:
    """Create a standard test organization."""
    return await org_factory.create()


# ============ Auth Helpers ============


@pytest_asyncio.fixture
async def management_headers(
    api_key_factory: APIKeyFactory,
    test_org: Organization,
) -> dict[str, str]:
    """Bearer headers for a server key of the test organization."""
    full_key, _ = await api_key_factory.create(test_org, APIKeyType.SERVER)
    return {"Authorization": f"Bearer {full_key}"}


@pytest_asyncio.fixture
async def sdk_key(api_key_factory: APIKeyFactory, test_org: Organization) -> str:
    """Client key of the test organization (production, all projects)."""
    full_key, _ = await api_key_factory.create(test_org, environment="production")
    return full_key


# ============ Feature Builders ============


def make_feature(
    key: str = "show-banner",
    value_type: str = "boolean",
    default_value: str = "true",
    environments: dict[str, FeatureEnvironment] | None = None,
    **kwargs: Any,
) -> FeatureInterface:
    """Build a feature without going through the service."""
    return FeatureInterface(
        key=key,
        organization=kwargs.pop("organization", None) or uuid4(),
        owner=kwargs.pop("owner", "owner@example.com"),
        value_type=value_type,
        default_value=default_value,
        environment_settings=environments or {},
        **kwargs,
    )


def production(*rules: dict[str, Any], enabled: bool = True) -> dict[str, FeatureEnvironment]:
    """Production environment settings from camelCase rule dicts."""
    return {
        "production": FeatureEnvironment(
            enabled=enabled,
            rules=[FeatureRule.from_dict(r) for r in rules],
        )
    }


# ============ API Helpers ============


BANNER = {
    "key": "show-banner",
    "owner": "owner@example.com",
    "valueType": "boolean",
    "defaultValue": "true",
    "environmentSettings": {
        "production": {
            "enabled": True,
            "rules": [{
                "type": "rollout",
                "enabled": True,
                "value": "false",
                "coverage": 1.5,
                "hashAttribute": "id",
            }],
        },
    },
}


async def create_feature(client: AsyncClient, headers: dict[str, str], **overrides: Any) -> dict:
    """Create a feature through the API (BANNER with overrides)."""
    response = await client.post("/api/features", headers=headers, json={**BANNER, **overrides})
    assert response.status_code == 201, response.text
    return response.json()
