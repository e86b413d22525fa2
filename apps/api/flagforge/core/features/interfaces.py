"""
Feature Interfaces - Core abstractions.

Domain records for stored features (as read by the compiler) and the
storage contract implemented by the backends.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class FeatureValueType(str, Enum):
    """Declared runtime type of a feature's values."""
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    JSON = "json"


class RuleType(str, Enum):
    """Kinds of targeting rules within an environment."""
    FORCE = "force"
    EXPERIMENT = "experiment"
    ROLLOUT = "rollout"


@dataclass
class ExperimentValue:
    """One experiment variation: raw value plus traffic weight."""
    value: str
    weight: float = 0.0


@dataclass
class NamespaceValue:
    """
    Namespace bucketing settings for an experiment.

    `range` holds the low/high bounds as stored, which may be strings.
    """
    enabled: bool = False
    name: str = ""
    range: list[Any] = field(default_factory=lambda: [0, 1])


@dataclass
class FeatureRule:
    """
    A stored targeting rule.

    Attributes:
        type: force, experiment or rollout (kept as a plain string so that
            unknown types coming out of storage survive loading)
        enabled: Disabled rules are never compiled
        id: Stable rule id, assigned with the "fr_" prefix when missing
        condition: JSON-encoded targeting expression
        value: Raw value for force and rollout rules
        values: Variations for experiment rules
    """
    type: str
    enabled: bool = True
    id: str = ""
    description: str = ""
    condition: str | None = None
    value: str = ""
    values: list[ExperimentValue] = field(default_factory=list)
    coverage: float = 1.0
    tracking_key: str | None = None
    hash_attribute: str | None = None
    namespace: NamespaceValue | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeatureRule":
        namespace = data.get("namespace")
        return cls(
            type=data.get("type", ""),
            enabled=data.get("enabled", True),
            id=data.get("id") or "",
            description=data.get("description") or "",
            condition=data.get("condition"),
            value=data.get("value", ""),
            values=[
                ExperimentValue(value=v.get("value", ""), weight=v.get("weight", 0))
                for v in data.get("values") or []
            ],
            coverage=data.get("coverage", 1.0),
            tracking_key=data.get("trackingKey", data.get("tracking_key")),
            hash_attribute=data.get("hashAttribute", data.get("hash_attribute")),
            namespace=NamespaceValue(
                enabled=bool(namespace.get("enabled", False)),
                name=namespace.get("name") or "",
                range=list(namespace.get("range") or [0, 1]),
            ) if namespace else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the camelCase names of the stored documents."""
        data: dict[str, Any] = {
            "type": self.type,
            "enabled": self.enabled,
            "id": self.id,
            "description": self.description,
            "condition": self.condition,
            "value": self.value,
            "values": [asdict(v) for v in self.values],
            "coverage": self.coverage,
            "trackingKey": self.tracking_key,
            "hashAttribute": self.hash_attribute,
            "namespace": asdict(self.namespace) if self.namespace else None,
        }
        return data


@dataclass
class FeatureEnvironment:
    """Per (feature, environment) settings. Rule order is significant."""
    enabled: bool = False
    rules: list[FeatureRule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeatureEnvironment":
        return cls(
            enabled=bool(data.get("enabled", False)),
            rules=[FeatureRule.from_dict(r) for r in data.get("rules") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "rules": [r.to_dict() for r in self.rules],
        }


@dataclass
class FeatureDraftChanges:
    """Unpublished changes to a feature's default value and rules."""
    active: bool = False
    default_value: str | None = None
    rules: dict[str, list[FeatureRule]] | None = None
    date_created: datetime | None = None
    date_updated: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FeatureDraftChanges | None":
        if data is None:
            return None
        rules = data.get("rules")
        return cls(
            active=bool(data.get("active", False)),
            default_value=data.get("defaultValue", data.get("default_value")),
            rules=(
                {env: [FeatureRule.from_dict(r) for r in env_rules]
                 for env, env_rules in rules.items()}
                if rules is not None else None
            ),
            date_created=_parse_datetime(data.get("dateCreated")),
            date_updated=_parse_datetime(data.get("dateUpdated")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "defaultValue": self.default_value,
            "rules": (
                {env: [r.to_dict() for r in env_rules] for env, env_rules in self.rules.items()}
                if self.rules is not None else None
            ),
            "dateCreated": self.date_created.isoformat() if self.date_created else None,
            "dateUpdated": self.date_updated.isoformat() if self.date_updated else None,
        }


@dataclass
class FeatureRevision:
    """Publication metadata."""
    version: int = 1
    comment: str = ""
    date: datetime | None = None
    published_by: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FeatureRevision | None":
        if data is None:
            return None
        return cls(
            version=int(data.get("version", 1)),
            comment=data.get("comment") or "",
            date=_parse_datetime(data.get("date")),
            published_by=data.get("publishedBy", data.get("published_by")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "comment": self.comment,
            "date": self.date.isoformat() if self.date else None,
            "publishedBy": self.published_by,
        }


@dataclass
class FeatureInterface:
    """
    A stored feature flag.

    Attributes:
        key: Unique (per organization) identifier, lowercase, immutable
        organization: Owning organization id
        value_type: Declared type; value_type is a plain string when loaded
            from storage so unknown types coerce to None instead of failing
        default_value: Raw string, interpreted according to value_type
        environment_settings: Environment name -> settings
    """
    key: str
    organization: UUID
    owner: str
    value_type: str
    default_value: str
    project: str | None = None
    description: str | None = None
    archived: bool = False
    tags: list[str] = field(default_factory=list)
    environment_settings: dict[str, FeatureEnvironment] = field(default_factory=dict)
    draft: FeatureDraftChanges | None = None
    revision: FeatureRevision | None = None
    date_created: datetime | None = None
    date_updated: datetime | None = None


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class FeatureBackend(ABC):
    """
    Abstract backend for feature storage.

    Implementations:
    - MemoryFeatureBackend: In-memory (dev/testing)
    - DatabaseFeatureBackend: SQL database
    """

    @abstractmethod
    async def get_all_features(
        self,
        organization: UUID,
        projects: list[str] | None = None,
    ) -> list[FeatureInterface]:
        """
        Load every feature of an organization.

        An empty or missing `projects` list means no project restriction.
        """
        pass

    @abstractmethod
    async def get_feature(self, organization: UUID, key: str) -> FeatureInterface | None:
        """Get a feature by key."""
        pass

    @abstractmethod
    async def create_feature(self, feature: FeatureInterface) -> FeatureInterface:
        """Store a new feature."""
        pass

    @abstractmethod
    async def update_feature(
        self,
        organization: UUID,
        key: str,
        updates: dict[str, Any],
    ) -> FeatureInterface | None:
        """Apply attribute updates to a stored feature."""
        pass

    @abstractmethod
    async def last_updated(self, organization: UUID) -> datetime | None:
        """Most recent update time across the organization's features."""
        pass
