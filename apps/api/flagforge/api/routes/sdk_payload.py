"""
SDK payload API route.

Public endpoint polled by SDKs; the client key in the path selects the
organization, environment and project scope.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from flagforge.api.dependencies.services import get_sdk_payload_service
from flagforge.services.sdk_payload import (
    InvalidApiKeyError,
    MissingApiKeyError,
    SdkPayloadService,
)

router = APIRouter()


@router.get("/{key}")
async def get_sdk_payload(
    key: str,
    service: SdkPayloadService = Depends(get_sdk_payload_service),
) -> dict[str, Any]:
    """Compiled feature definitions for an SDK key."""
    try:
        return await service.get_payload(key.strip())
    except MissingApiKeyError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except InvalidApiKeyError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))


@router.get("")
async def get_sdk_payload_without_key() -> dict[str, Any]:
    """Requests without a key get the same error as an empty key."""
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=str(MissingApiKeyError()),
    )
