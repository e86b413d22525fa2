"""
In-memory backend for features.

For development and testing. Data is lost on restart.
"""

import copy
from datetime import datetime
from typing import Any
from uuid import UUID

from ..interfaces import FeatureInterface, FeatureBackend


class MemoryFeatureBackend(FeatureBackend):
    """
    In-memory feature storage.

    Returns copies, so callers holding a loaded feature never observe
    later updates (same snapshot semantics as the database backend).
    """

    def __init__(self):
        self._features: dict[tuple[UUID, str], FeatureInterface] = {}

    async def get_all_features(
        self,
        organization: UUID,
        projects: list[str] | None = None,
    ) -> list[FeatureInterface]:
        return [
            copy.deepcopy(feature)
            for (org, _), feature in self._features.items()
            if org == organization and (not projects or feature.project in projects)
        ]

    async def get_feature(self, organization: UUID, key: str) -> FeatureInterface | None:
        feature = self._features.get((organization, key))
        return copy.deepcopy(feature) if feature else None

    async def create_feature(self, feature: FeatureInterface) -> FeatureInterface:
        self._features[(feature.organization, feature.key)] = copy.deepcopy(feature)
        return feature

    async def update_feature(
        self,
        organization: UUID,
        key: str,
        updates: dict[str, Any],
    ) -> FeatureInterface | None:
        feature = self._features.get((organization, key))
        if not feature:
            return None

        for field, value in updates.items():
            if hasattr(feature, field):
                setattr(feature, field, copy.deepcopy(value))

        return copy.deepcopy(feature)

    async def last_updated(self, organization: UUID) -> datetime | None:
        dates = [
            f.date_updated
            for (org, _), f in self._features.items()
            if org == organization and f.date_updated
        ]
        return max(dates) if dates else None

    # ============================================================
    # TEST HELPERS
    # ============================================================

    def clear(self) -> None:
        """Clear all data. Useful for testing."""
        self._features.clear()

    def seed(self, features: list[FeatureInterface]) -> None:
        """Seed with features as-is (no validation). Useful for testing."""
        for feature in features:
            self._features[(feature.organization, feature.key)] = copy.deepcopy(feature)
