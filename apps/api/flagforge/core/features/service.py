"""
Feature Service - Feature lifecycle and definition loading.

Handles:
- Creating features (validation, default value normalization, rule ids)
- Updating the mutable feature fields
- Publishing drafts with concurrent-edit detection
- Archiving and rule re-ordering
- Loading compiled definitions for an environment
- Notifying listeners (payload cache, webhooks) after changes
"""

import re
import secrets
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol
from uuid import UUID

import structlog

from flagforge.core.hooks.manager import FEATURE_UPDATED, hooks as default_hooks

from .compiler import (
    DEFAULT_ENVIRONMENT,
    assemble_feature_definitions,
    get_enabled_environments,
)
from .exceptions import (
    DraftConflictError,
    FeatureNotFoundError,
    FeatureValidationError,
)
from .interfaces import (
    FeatureBackend,
    FeatureDraftChanges,
    FeatureEnvironment,
    FeatureInterface,
    FeatureRevision,
    FeatureRule,
    FeatureValueType,
    RuleType,
)
from .values import parse_default_value

logger = structlog.get_logger()

FEATURE_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_.:|-]+$")

RULE_ID_PREFIX = "fr_"

PAYLOAD_CACHE_PREFIX = "sdk-payload"

# Feature attribute -> may it be changed through update_feature()
FEATURE_FIELD_MUTABILITY: dict[str, bool] = {
    "key": False,
    "organization": False,
    "owner": True,
    "project": True,
    "description": True,
    "tags": True,
    "value_type": False,
    "default_value": False,
    "archived": False,
    "environment_settings": False,
    "draft": False,
    "revision": False,
    "date_created": False,
    "date_updated": False,
}


class ProjectLookup(Protocol):
    """Anything that can tell whether a project exists in an organization."""

    async def exists(self, org_id: UUID, project_id: str) -> bool:
        ...


class PayloadCache(Protocol):
    """Subset of the cache backend used for compiled payloads."""

    async def delete_pattern(self, pattern: str) -> int:
        ...


# ============================================================
# HELPERS
# ============================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_rule_id() -> str:
    return f"{RULE_ID_PREFIX}{secrets.token_hex(8)}"


def add_ids_to_rules(
    environment_settings: dict[str, FeatureEnvironment],
    feature_key: str,
) -> None:
    """
    Fill in missing rule ids and experiment tracking keys, in place.

    Experiments without a tracking key are tracked under the feature key.
    """
    for settings in environment_settings.values():
        _add_ids(settings.rules, feature_key)


def _add_ids(rules: list[FeatureRule], feature_key: str) -> None:
    for rule in rules:
        if rule.type == RuleType.EXPERIMENT and not rule.tracking_key:
            rule.tracking_key = feature_key
        if not rule.id:
            rule.id = generate_rule_id()


def verify_drafts_are_equal(
    actual: FeatureDraftChanges | None,
    expected: FeatureDraftChanges | None,
) -> None:
    """
    Make sure the draft being published is the one the caller reviewed.

    Raises:
        DraftConflictError: Default value or rules differ.
    """
    def comparable(draft: FeatureDraftChanges | None) -> tuple[Any, Any]:
        if draft is None:
            return None, None
        return draft.default_value, draft.rules

    if comparable(actual) != comparable(expected):
        raise DraftConflictError()


def array_move(items: list[Any], from_index: int, to_index: int) -> list[Any]:
    """Copy of `items` with one element moved. Negative `to_index` counts from the end."""
    moved = list(items)
    item = moved.pop(from_index)
    if to_index < 0:
        to_index = len(moved) + to_index
    moved.insert(to_index, item)
    return moved


def payload_cache_key(organization: UUID, environment: str, projects: list[str]) -> str:
    scope = ",".join(sorted(projects)) if projects else "*"
    return f"{PAYLOAD_CACHE_PREFIX}:{organization}:{environment}:{scope}"


def payload_cache_pattern(organization: UUID) -> str:
    return f"{PAYLOAD_CACHE_PREFIX}:{organization}:*"


# ============================================================
# SERVICE
# ============================================================

class FeatureService:
    """
    Feature management service.

    Validation failures raise FeatureValidationError before anything is
    stored. Change notifications go out through the "feature.updated" hook;
    hook failures are logged by the hook manager and never fail the
    operation that caused them.

    When `commit` is given it is awaited before the cache is invalidated
    and listeners run, so nothing can re-read the pre-change rows.
    """

    def __init__(
        self,
        backend: FeatureBackend,
        projects: ProjectLookup | None = None,
        cache: PayloadCache | None = None,
        hook_manager=None,
        commit: Callable[[], Awaitable[None]] | None = None,
    ):
        self.backend = backend
        self.projects = projects
        self.cache = cache
        self.hooks = hook_manager or default_hooks
        self.commit = commit

    # ============================================================
    # DEFINITIONS
    # ============================================================

    async def get_feature_definitions(
        self,
        organization: UUID,
        environment: str = DEFAULT_ENVIRONMENT,
        projects: list[str] | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Compile the organization's features for one environment."""
        features = await self.backend.get_all_features(organization, projects)
        return assemble_feature_definitions(features, environment)

    # ============================================================
    # READ
    # ============================================================

    async def get_feature(self, organization: UUID, key: str) -> FeatureInterface:
        feature = await self.backend.get_feature(organization, key.lower())
        if feature is None:
            raise FeatureNotFoundError(key)
        return feature

    async def list_features(
        self,
        organization: UUID,
        project: str | None = None,
    ) -> list[FeatureInterface]:
        features = await self.backend.get_all_features(
            organization,
            [project] if project else None,
        )
        return sorted(features, key=lambda f: f.key)

    # ============================================================
    # CREATE / UPDATE
    # ============================================================

    async def create_feature(
        self,
        *,
        key: str | None,
        organization: UUID | None,
        owner: str | None,
        value_type: str | None,
        default_value: str | None,
        project: str | None = None,
        description: str | None = None,
        archived: bool | None = None,
        tags: list[str] | None = None,
        environment_settings: dict[str, FeatureEnvironment] | None = None,
        draft: FeatureDraftChanges | None = None,
        revision: FeatureRevision | None = None,
    ) -> FeatureInterface:
        """
        Validate and store a new feature.

        Raises:
            FeatureValidationError: Invalid key, missing field, unknown value
                type, unparseable JSON default, or duplicate key.
        """
        if not key:
            raise FeatureValidationError("Must specify feature key")
        if not FEATURE_KEY_PATTERN.match(key):
            raise FeatureValidationError(
                "Feature keys can only include letters, numbers, hyphens, and underscores."
            )
        if not organization:
            raise FeatureValidationError("Organization could not be found")
        if not owner:
            raise FeatureValidationError("Owner must be specified")
        if not value_type:
            raise FeatureValidationError("Value type must be specified")
        if value_type not in {t.value for t in FeatureValueType}:
            raise FeatureValidationError(
                "Value type must be one of boolean, number, string, or json"
            )
        if not default_value:
            raise FeatureValidationError("Default value must be specified")

        key = key.lower()
        if await self.backend.get_feature(organization, key) is not None:
            raise FeatureValidationError("Feature key already exists")

        now = utc_now()
        feature = FeatureInterface(
            key=key,
            organization=organization,
            owner=owner,
            value_type=value_type,
            default_value=parse_default_value(default_value, value_type),
            project=project or None,
            description=description,
            archived=archived or False,
            tags=list(tags or []),
            environment_settings=dict(environment_settings or {}),
            draft=draft,
            revision=revision,
            date_created=now,
            date_updated=now,
        )
        add_ids_to_rules(feature.environment_settings, feature.key)

        feature = await self.backend.create_feature(feature)
        logger.info("Feature created", key=feature.key, organization=str(organization))

        await self.feature_updated(feature)
        return feature

    async def update_feature(
        self,
        organization: UUID,
        key: str,
        updates: dict[str, Any],
    ) -> FeatureInterface:
        """
        Update the mutable fields of a feature.

        Raises:
            FeatureValidationError: Any field not allowed by
                FEATURE_FIELD_MUTABILITY (all of them listed at once), or an
                unknown project.
            FeatureNotFoundError: No such feature.
        """
        invalid = [k for k in updates if not FEATURE_FIELD_MUTABILITY.get(k, False)]
        if invalid:
            raise FeatureValidationError(
                f"Invalid update fields for feature: [{', '.join(invalid)}]"
            )

        feature = await self.get_feature(organization, key)

        changes = dict(updates)
        if "project" in changes:
            changes["project"] = changes["project"] or None
            if changes["project"] and not await self._project_exists(organization, changes["project"]):
                raise FeatureValidationError("Project not found")

        requires_webhook = "project" in changes and changes["project"] != feature.project

        changes["date_updated"] = utc_now()
        updated = await self.backend.update_feature(organization, feature.key, changes)
        if updated is None:
            raise FeatureNotFoundError(key)

        if requires_webhook:
            await self.feature_updated(
                updated,
                get_enabled_environments(feature),
                feature.project or "",
            )

        return updated

    async def _project_exists(self, organization: UUID, project: str) -> bool:
        if self.projects is None:
            return False
        return await self.projects.exists(organization, project)

    # ============================================================
    # DRAFTS / ARCHIVE / RULE ORDER
    # ============================================================

    async def publish_draft(
        self,
        organization: UUID,
        key: str,
        expected: FeatureDraftChanges | None,
        comment: str = "",
        published_by: str | None = None,
    ) -> FeatureInterface:
        """
        Publish the feature's draft.

        `expected` is the draft the caller reviewed; if the stored draft has
        changed since, nothing is published.

        Raises:
            DraftConflictError: Stored draft differs from `expected`.
            FeatureValidationError: No active draft.
        """
        feature = await self.get_feature(organization, key)
        draft = feature.draft
        if draft is None or not draft.active:
            raise FeatureValidationError("There are no draft changes to publish")

        verify_drafts_are_equal(draft, expected)

        previous_environments = get_enabled_environments(feature)

        environment_settings = dict(feature.environment_settings)
        for env, rules in (draft.rules or {}).items():
            current = environment_settings.get(env) or FeatureEnvironment()
            environment_settings[env] = FeatureEnvironment(enabled=current.enabled, rules=list(rules))
        add_ids_to_rules(environment_settings, feature.key)

        now = utc_now()
        version = feature.revision.version + 1 if feature.revision else 1
        changes: dict[str, Any] = {
            "environment_settings": environment_settings,
            "draft": None,
            "revision": FeatureRevision(
                version=version,
                comment=comment,
                date=now,
                published_by=published_by,
            ),
            "date_updated": now,
        }
        if draft.default_value is not None:
            changes["default_value"] = draft.default_value

        updated = await self.backend.update_feature(organization, feature.key, changes)
        if updated is None:
            raise FeatureNotFoundError(key)

        logger.info("Feature draft published", key=feature.key, version=version)
        await self.feature_updated(updated, previous_environments, feature.project or "")
        return updated

    async def set_archived(
        self,
        organization: UUID,
        key: str,
        archived: bool,
    ) -> FeatureInterface:
        """Archive or restore a feature."""
        feature = await self.get_feature(organization, key)
        updated = await self.backend.update_feature(
            organization,
            feature.key,
            {"archived": archived, "date_updated": utc_now()},
        )
        if updated is None:
            raise FeatureNotFoundError(key)

        await self.feature_updated(updated, get_enabled_environments(feature), feature.project or "")
        return updated

    async def move_rule(
        self,
        organization: UUID,
        key: str,
        environment: str,
        from_index: int,
        to_index: int,
    ) -> FeatureInterface:
        """
        Re-order the rules of one environment.

        Raises:
            FeatureValidationError: Unknown environment or index out of range.
        """
        feature = await self.get_feature(organization, key)
        settings = feature.environment_settings.get(environment)
        if settings is None:
            raise FeatureValidationError(f"Unknown environment: {environment}")

        count = len(settings.rules)
        if not 0 <= from_index < count or not -count <= to_index < count:
            raise FeatureValidationError("Invalid rule index")

        environment_settings = dict(feature.environment_settings)
        environment_settings[environment] = FeatureEnvironment(
            enabled=settings.enabled,
            rules=array_move(settings.rules, from_index, to_index),
        )

        updated = await self.backend.update_feature(
            organization,
            feature.key,
            {"environment_settings": environment_settings, "date_updated": utc_now()},
        )
        if updated is None:
            raise FeatureNotFoundError(key)

        await self.feature_updated(updated, get_enabled_environments(feature), feature.project or "")
        return updated

    # ============================================================
    # NOTIFICATION
    # ============================================================

    async def feature_updated(
        self,
        feature: FeatureInterface,
        previous_environments: list[str] | None = None,
        previous_project: str = "",
    ) -> None:
        """
        Invalidate cached payloads and notify "feature.updated" listeners.

        Listeners get every environment enabled before or after the change
        and both the old and new project.
        """
        if self.commit is not None:
            await self.commit()

        if self.cache is not None:
            await self.cache.delete_pattern(payload_cache_pattern(feature.organization))

        environments = list(dict.fromkeys(
            get_enabled_environments(feature) + list(previous_environments or [])
        ))

        await self.hooks.trigger(
            FEATURE_UPDATED,
            organization=feature.organization,
            environments=environments,
            projects=[previous_project or "", feature.project or ""],
        )
