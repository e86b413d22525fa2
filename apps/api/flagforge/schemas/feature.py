"""
Feature schemas.

Request and response bodies use the camelCase names SDK tooling expects
(valueType, defaultValue, environmentSettings, ...); snake_case is
accepted on input as well.
"""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from flagforge.core.features.interfaces import (
    FeatureDraftChanges,
    FeatureEnvironment,
    FeatureInterface,
    FeatureRule,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExperimentValueSchema(CamelModel):
    value: str = ""
    weight: float = 0.0


class NamespaceSchema(CamelModel):
    enabled: bool = False
    name: str = ""
    range: list[Any] = Field(default_factory=lambda: [0, 1])


class FeatureRuleSchema(CamelModel):
    """A targeting rule as submitted by a client."""
    type: str
    enabled: bool = True
    id: str = ""
    description: str = ""
    condition: str | None = None
    value: str = ""
    values: list[ExperimentValueSchema] = Field(default_factory=list)
    coverage: float = 1.0
    tracking_key: str | None = None
    hash_attribute: str | None = None
    namespace: NamespaceSchema | None = None

    def to_rule(self) -> FeatureRule:
        return FeatureRule.from_dict(self.model_dump(by_alias=True))


class FeatureEnvironmentSchema(CamelModel):
    enabled: bool = False
    rules: list[FeatureRuleSchema] = Field(default_factory=list)

    def to_environment(self) -> FeatureEnvironment:
        return FeatureEnvironment(
            enabled=self.enabled,
            rules=[r.to_rule() for r in self.rules],
        )


class FeatureDraftSchema(CamelModel):
    """Draft contents. On publish, the draft the caller reviewed."""
    active: bool = True
    default_value: str | None = None
    rules: dict[str, list[FeatureRuleSchema]] | None = None

    def to_draft(self) -> FeatureDraftChanges:
        return FeatureDraftChanges(
            active=self.active,
            default_value=self.default_value,
            rules=(
                {env: [r.to_rule() for r in rules] for env, rules in self.rules.items()}
                if self.rules is not None else None
            ),
        )


class FeatureCreate(CamelModel):
    """
    Feature creation schema.

    Required fields are optional here so the service can report which one
    is missing with its own message.
    """
    key: str | None = None
    owner: str | None = None
    value_type: str | None = None
    default_value: str | None = None
    project: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    environment_settings: dict[str, FeatureEnvironmentSchema] = Field(default_factory=dict)
    draft: FeatureDraftSchema | None = None


class FeaturePublish(CamelModel):
    comment: str = ""
    draft: FeatureDraftSchema | None = None


class FeatureArchive(CamelModel):
    archived: bool = True


class RuleMove(BaseModel):
    environment: str
    from_index: int = Field(alias="from")
    to_index: int = Field(alias="to")

    model_config = ConfigDict(populate_by_name=True)


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_update_fields(body: dict[str, Any]) -> dict[str, Any]:
    """Map a PATCH body (camelCase or snake_case) to feature attribute names."""
    return {_CAMEL_BOUNDARY.sub("_", k).lower(): v for k, v in body.items()}


# ============================================================
# RESPONSES
# ============================================================

def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def feature_to_dict(feature: FeatureInterface) -> dict[str, Any]:
    """Serialize a feature for management responses."""
    return {
        "key": feature.key,
        "organization": str(feature.organization),
        "owner": feature.owner,
        "project": feature.project or "",
        "description": feature.description or "",
        "valueType": feature.value_type,
        "defaultValue": feature.default_value,
        "archived": feature.archived,
        "tags": list(feature.tags),
        "environmentSettings": {
            env: settings.to_dict()
            for env, settings in feature.environment_settings.items()
        },
        "draft": feature.draft.to_dict() if feature.draft else None,
        "revision": feature.revision.to_dict() if feature.revision else None,
        "dateCreated": _isoformat(feature.date_created),
        "dateUpdated": _isoformat(feature.date_updated),
    }
