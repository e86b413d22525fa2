"""
FastAPI dependencies for features.

Usage:
    from flagforge.core.features.dependencies import Features

    @router.get("/features/{key}")
    async def get_feature(key: str, features: Features, api_key: ManagementKey):
        return await features.get_feature(api_key.org_id, key)
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from flagforge.core.config import settings
from flagforge.core.interfaces import CacheBackend
from flagforge.api.dependencies.database import get_db
from flagforge.implementations.cache import create_cache
from flagforge.services.project import ProjectService

from .interfaces import FeatureBackend
from .service import FeatureService
from .backends.database import DatabaseFeatureBackend
from .backends.memory import MemoryFeatureBackend


# ============================================================
# BACKEND FACTORY
# ============================================================

@lru_cache
def get_memory_backend() -> MemoryFeatureBackend:
    """Process-wide memory backend (development)."""
    return MemoryFeatureBackend()


async def get_feature_backend(
    db: AsyncSession = Depends(get_db),
) -> FeatureBackend:
    """
    Get feature backend based on configuration.

    Uses FEATURE_BACKEND setting:
    - "database": PostgreSQL (default, production)
    - "memory": In-memory (development/testing)
    """
    if settings.features.backend == "memory":
        return get_memory_backend()
    return DatabaseFeatureBackend(db)


@lru_cache
def get_payload_cache() -> CacheBackend:
    """Process-wide compiled payload cache (connected in the app lifespan)."""
    return create_cache(settings)


# ============================================================
# FEATURE SERVICE DEPENDENCY
# ============================================================

async def get_feature_service(
    db: AsyncSession = Depends(get_db),
    backend: FeatureBackend = Depends(get_feature_backend),
    cache: CacheBackend = Depends(get_payload_cache),
) -> FeatureService:
    """Get feature service instance."""
    return FeatureService(backend, projects=ProjectService(db), cache=cache, commit=db.commit)


# Type alias for cleaner injection
Features = Annotated[FeatureService, Depends(get_feature_service)]
