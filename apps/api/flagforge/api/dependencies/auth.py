"""
Authentication dependencies.

Management routes take a server or master API key as a bearer token:

    Authorization: Bearer ser_...

Usage:
    from flagforge.api.dependencies.auth import ManagementKey

    @router.get("/features")
    async def handler(api_key: ManagementKey):
        org_id = api_key.org_id
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from flagforge.models.api_key import APIKey
from flagforge.services.api_key import APIKeyService
from .database import get_db


bearer_scheme = HTTPBearer(auto_error=False)


async def get_management_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> APIKey:
    """
    Resolve the bearer token to a server/master API key.

    Raises:
        HTTPException 401: Missing, unknown or expired key
        HTTPException 403: Client (SDK) key
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    api_key = await APIKeyService(db).authenticate(credentials.credentials)
    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not api_key.can_manage_features:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="A server or master key is required",
        )

    return api_key


ManagementKey = Annotated[APIKey, Depends(get_management_key)]
