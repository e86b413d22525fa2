"""
API Key service.
"""

import secrets
import hashlib
from datetime import datetime, timezone
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from flagforge.core.features.encryption import generate_encryption_key
from flagforge.models.api_key import APIKey, APIKeyType
from flagforge.schemas.api_key import APIKeyCreate


class APIKeyService:
    """
    API key management service.

    No route issues keys. A new deployment seeds its first server (or
    master) key from a shell, after creating the organization row:

        async with get_session_factory()() as db:
            full_key, _ = await APIKeyService(db).create(
                org.id,
                APIKeyCreate(name="bootstrap", key_type=APIKeyType.SERVER),
            )
            await db.commit()

    Only the hash is stored, so `full_key` must be saved when printed.
    Client keys for SDKs are created the same way with
    `key_type=APIKeyType.CLIENT` and an `environment`.
    """

    KEY_LENGTH = 32
    PREFIX_LENGTH = 8

    def __init__(self, db: AsyncSession):
        self.db = db

    def generate_key(self, key_type: APIKeyType) -> tuple[str, str, str]:
        """Generate API key. Returns (full_key, prefix, hash)."""
        key = f"{key_type.value[:3]}_{secrets.token_urlsafe(self.KEY_LENGTH)}"
        prefix = key[:self.PREFIX_LENGTH]
        return key, prefix, self.hash_key(key)

    def hash_key(self, key: str) -> str:
        """Hash an API key."""
        return hashlib.sha256(key.encode()).hexdigest()

    async def get_by_key(self, key: str) -> APIKey | None:
        """Get API key by full key value."""
        stmt = select(APIKey).where(APIKey.key_hash == self.hash_key(key))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, org_id: UUID, data: APIKeyCreate) -> tuple[str, APIKey]:
        """Create API key. Returns (full_key, api_key_record)."""
        full_key, prefix, key_hash = self.generate_key(data.key_type)

        api_key = APIKey(
            key_prefix=prefix,
            key_hash=key_hash,
            name=data.name,
            description=data.description,
            key_type=data.key_type,
            org_id=org_id,
            environment=data.environment,
            projects=list(data.projects),
            encrypt_payload=data.encrypt_payload,
            encryption_key=generate_encryption_key() if data.encrypt_payload else None,
            expires_at=data.expires_at,
        )
        self.db.add(api_key)
        await self.db.flush()

        return full_key, api_key

    async def authenticate(self, key: str) -> APIKey | None:
        """Resolve a key to its record. None if unknown or expired."""
        api_key = await self.get_by_key(key)
        if not api_key or api_key.is_expired:
            return None

        # Update usage stats
        api_key.last_used_at = datetime.now(timezone.utc)
        api_key.use_count = (api_key.use_count or 0) + 1
        await self.db.flush()

        return api_key
