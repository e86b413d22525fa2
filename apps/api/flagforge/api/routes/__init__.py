"""
API routes aggregation.
"""

from fastapi import APIRouter

from .features import router as features_router
from .sdk_payload import router as sdk_payload_router

router = APIRouter()

router.include_router(sdk_payload_router, prefix="/sdk-payload", tags=["sdk"])
router.include_router(features_router, prefix="/features", tags=["features"])
