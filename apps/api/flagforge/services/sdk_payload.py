"""
SDK payload service.

Resolves an SDK (client) key to its organization, environment and project
scope, then serves the compiled feature definitions for that scope:

    {"status": 200, "features": {...}, "dateUpdated": "2024-01-01T00:00:00+00:00"}

Encrypted connections get "features": {} plus "encryptedFeatures".
Compiled definitions are cached per (organization, environment, projects).
"""

import json
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from flagforge.core.config import FeatureSettings
from flagforge.core.features.compiler import assemble_feature_definitions
from flagforge.core.features.encryption import encrypt_payload
from flagforge.core.features.interfaces import FeatureBackend
from flagforge.core.features.projects import filter_projects_by_environment, find_environment
from flagforge.core.features.service import payload_cache_key
from flagforge.core.interfaces import CacheBackend
from flagforge.models.api_key import APIKey, APIKeyType
from flagforge.models.org import Organization
from flagforge.services.api_key import APIKeyService

logger = structlog.get_logger()


class SdkPayloadError(Exception):
    """Base class for SDK payload request errors."""


class MissingApiKeyError(SdkPayloadError):
    def __init__(self):
        super().__init__("Missing API key in request")


class InvalidApiKeyError(SdkPayloadError):
    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message)


class SdkPayloadService:
    """Builds SDK payloads for client keys."""

    def __init__(
        self,
        db: AsyncSession,
        backend: FeatureBackend,
        feature_settings: FeatureSettings,
        cache: CacheBackend | None = None,
    ):
        self.db = db
        self.backend = backend
        self.settings = feature_settings
        self.cache = cache

    async def get_payload(self, key: str | None) -> dict[str, Any]:
        """
        Payload for an SDK key.

        Raises:
            MissingApiKeyError: No key given.
            InvalidApiKeyError: Unknown, expired or non-client key.
        """
        if not key:
            raise MissingApiKeyError()

        api_key = await APIKeyService(self.db).authenticate(key)
        if api_key is None:
            raise InvalidApiKeyError()
        if api_key.key_type != APIKeyType.CLIENT:
            raise InvalidApiKeyError("SDK payloads require a client key")

        organization = await self.db.get(Organization, api_key.org_id)
        if organization is None:
            raise InvalidApiKeyError()

        environment = api_key.environment or self.settings.default_environment
        projects = filter_projects_by_environment(
            list(api_key.projects or []),
            find_environment(organization.environments, environment),
            apply_to_all=True,
        )

        if projects is None:
            # Nothing in the key's scope is allowed in this environment
            compiled = {"features": {}, "dateUpdated": _isoformat(None)}
        else:
            compiled = await self._compiled(organization.id, environment, projects)

        logger.debug(
            "SDK payload served",
            organization=str(organization.id),
            environment=environment,
            projects=projects,
            features=len(compiled["features"]),
        )
        return self._response(api_key, compiled)

    async def _compiled(
        self,
        organization: UUID,
        environment: str,
        projects: list[str],
    ) -> dict[str, Any]:
        use_cache = self.cache is not None and self.settings.cache_ttl > 0
        cache_key = payload_cache_key(organization, environment, projects)

        if use_cache:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return cached

        features = await self.backend.get_all_features(organization, projects)
        compiled = {
            "features": assemble_feature_definitions(features, environment),
            "dateUpdated": _isoformat(await self.backend.last_updated(organization)),
        }

        if use_cache:
            await self.cache.set(cache_key, compiled, ttl=self.settings.cache_ttl)
        return compiled

    def _response(self, api_key: APIKey, compiled: dict[str, Any]) -> dict[str, Any]:
        if api_key.encrypt_payload and api_key.encryption_key:
            plaintext = json.dumps(compiled["features"], separators=(",", ":"), allow_nan=False)
            return {
                "status": 200,
                "features": {},
                "dateUpdated": compiled["dateUpdated"],
                "encryptedFeatures": encrypt_payload(plaintext, api_key.encryption_key),
            }

        return {
            "status": 200,
            "features": compiled["features"],
            "dateUpdated": compiled["dateUpdated"],
        }


def _isoformat(value: datetime | None) -> str:
    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
