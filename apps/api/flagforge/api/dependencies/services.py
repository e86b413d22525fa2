"""
Service dependencies.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from flagforge.core.config import settings
from flagforge.core.features.dependencies import get_feature_backend, get_payload_cache
from flagforge.core.features.interfaces import FeatureBackend
from flagforge.core.interfaces import CacheBackend
from flagforge.services.sdk_payload import SdkPayloadService
from .database import get_db


async def get_sdk_payload_service(
    db: AsyncSession = Depends(get_db),
    backend: FeatureBackend = Depends(get_feature_backend),
    cache: CacheBackend = Depends(get_payload_cache),
) -> SdkPayloadService:
    """Get SDK payload service instance."""
    return SdkPayloadService(db, backend, settings.features, cache=cache)
