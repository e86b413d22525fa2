"""
Database backend for features.

Uses PostgreSQL (SQLite in tests) for persistent storage.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..interfaces import (
    FeatureBackend,
    FeatureDraftChanges,
    FeatureEnvironment,
    FeatureInterface,
    FeatureRevision,
)
from ..models import FeatureModel


class DatabaseFeatureBackend(FeatureBackend):
    """
    SQL-backed feature storage.

    Environment settings, drafts and revisions round-trip through JSON
    columns; everything else maps to a plain column.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all_features(
        self,
        organization: UUID,
        projects: list[str] | None = None,
    ) -> list[FeatureInterface]:
        """Load every feature of an organization, optionally limited to projects."""
        query = select(FeatureModel).where(FeatureModel.org_id == organization)
        if projects:
            query = query.where(FeatureModel.project.in_(projects))

        result = await self.db.execute(query)
        return [self._model_to_feature(m) for m in result.scalars().all()]

    async def get_feature(self, organization: UUID, key: str) -> FeatureInterface | None:
        model = await self._get_model(organization, key)
        if not model:
            return None
        return self._model_to_feature(model)

    async def create_feature(self, feature: FeatureInterface) -> FeatureInterface:
        model = FeatureModel(
            org_id=feature.organization,
            key=feature.key,
            project=feature.project,
            owner=feature.owner,
            description=feature.description,
            value_type=feature.value_type,
            default_value=feature.default_value,
            archived=feature.archived,
            tags=list(feature.tags),
            **self._serialize_documents(
                environment_settings=feature.environment_settings,
                draft=feature.draft,
                revision=feature.revision,
            ),
        )
        if feature.date_created:
            model.created_at = feature.date_created
        if feature.date_updated:
            model.updated_at = feature.date_updated

        self.db.add(model)
        await self.db.flush()
        await self.db.refresh(model)

        return self._model_to_feature(model)

    async def update_feature(
        self,
        organization: UUID,
        key: str,
        updates: dict[str, Any],
    ) -> FeatureInterface | None:
        model = await self._get_model(organization, key)
        if not model:
            return None

        changes = dict(updates)
        documents = {
            name: changes.pop(name)
            for name in ("environment_settings", "draft", "revision")
            if name in changes
        }
        changes.update(self._serialize_documents(**documents))

        if "date_updated" in changes:
            changes["updated_at"] = changes.pop("date_updated")

        for field, value in changes.items():
            if hasattr(model, field):
                setattr(model, field, value)

        await self.db.flush()
        await self.db.refresh(model)

        return self._model_to_feature(model)

    async def last_updated(self, organization: UUID) -> datetime | None:
        query = select(func.max(FeatureModel.updated_at)).where(
            FeatureModel.org_id == organization
        )
        return await self.db.scalar(query)

    # ============================================================
    # HELPERS
    # ============================================================

    async def _get_model(self, organization: UUID, key: str) -> FeatureModel | None:
        query = select(FeatureModel).where(
            FeatureModel.org_id == organization,
            FeatureModel.key == key,
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    def _serialize_documents(self, **documents: Any) -> dict[str, Any]:
        serialized: dict[str, Any] = {}
        if "environment_settings" in documents:
            serialized["environment_settings"] = {
                env: settings.to_dict()
                for env, settings in (documents["environment_settings"] or {}).items()
            }
        for name in ("draft", "revision"):
            if name in documents:
                value = documents[name]
                serialized[name] = value.to_dict() if value is not None else None
        return serialized

    def _model_to_feature(self, model: FeatureModel) -> FeatureInterface:
        return FeatureInterface(
            key=model.key,
            organization=model.org_id,
            owner=model.owner,
            value_type=model.value_type,
            default_value=model.default_value,
            project=model.project,
            description=model.description,
            archived=model.archived,
            tags=list(model.tags or []),
            environment_settings={
                env: FeatureEnvironment.from_dict(settings)
                for env, settings in (model.environment_settings or {}).items()
            },
            draft=FeatureDraftChanges.from_dict(model.draft),
            revision=FeatureRevision.from_dict(model.revision),
            date_created=model.created_at,
            date_updated=model.updated_at,
        )
