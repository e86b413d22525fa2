"""
Feature management API routes.

All routes act on the organization of the server/master key used.
"""

from typing import Any

from fastapi import APIRouter, Body, HTTPException, status

from flagforge.api.dependencies.auth import ManagementKey
from flagforge.core.features.dependencies import Features
from flagforge.core.features.exceptions import (
    DraftConflictError,
    FeatureError,
    FeatureNotFoundError,
)
from flagforge.schemas.feature import (
    FeatureArchive,
    FeatureCreate,
    FeaturePublish,
    RuleMove,
    feature_to_dict,
    to_update_fields,
)

router = APIRouter()


def _http_error(exc: FeatureError) -> HTTPException:
    if isinstance(exc, FeatureNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, DraftConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("")
async def list_features(
    features: Features,
    api_key: ManagementKey,
    project: str | None = None,
) -> dict[str, Any]:
    """List the organization's features, optionally for one project."""
    items = await features.list_features(api_key.org_id, project)
    return {"features": [feature_to_dict(f) for f in items]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_feature(
    data: FeatureCreate,
    features: Features,
    api_key: ManagementKey,
) -> dict[str, Any]:
    """Create a feature."""
    try:
        feature = await features.create_feature(
            key=data.key,
            organization=api_key.org_id,
            owner=data.owner,
            value_type=data.value_type,
            default_value=data.default_value,
            project=data.project,
            description=data.description,
            tags=data.tags,
            environment_settings={
                env: settings.to_environment()
                for env, settings in data.environment_settings.items()
            },
            draft=data.draft.to_draft() if data.draft else None,
        )
    except FeatureError as e:
        raise _http_error(e)
    return feature_to_dict(feature)


@router.get("/{key}")
async def get_feature(
    key: str,
    features: Features,
    api_key: ManagementKey,
) -> dict[str, Any]:
    """Get one feature."""
    try:
        feature = await features.get_feature(api_key.org_id, key)
    except FeatureError as e:
        raise _http_error(e)
    return feature_to_dict(feature)


@router.patch("/{key}")
async def update_feature(
    key: str,
    features: Features,
    api_key: ManagementKey,
    body: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """
    Update a feature.

    Only owner, project, description and tags may change; any other field
    fails the whole request.
    """
    if not body:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )

    try:
        feature = await features.update_feature(api_key.org_id, key, to_update_fields(body))
    except FeatureError as e:
        raise _http_error(e)
    return feature_to_dict(feature)


@router.post("/{key}/publish")
async def publish_feature(
    key: str,
    data: FeaturePublish,
    features: Features,
    api_key: ManagementKey,
) -> dict[str, Any]:
    """
    Publish the feature's draft.

    `draft` is the draft the caller reviewed; 409 if it has changed since.
    """
    try:
        feature = await features.publish_draft(
            api_key.org_id,
            key,
            expected=data.draft.to_draft() if data.draft else None,
            comment=data.comment,
            published_by=api_key.name,
        )
    except FeatureError as e:
        raise _http_error(e)
    return feature_to_dict(feature)


@router.post("/{key}/archive")
async def archive_feature(
    key: str,
    features: Features,
    api_key: ManagementKey,
    data: FeatureArchive | None = None,
) -> dict[str, Any]:
    """Archive (or with {"archived": false} restore) a feature."""
    archived = data.archived if data else True
    try:
        feature = await features.set_archived(api_key.org_id, key, archived)
    except FeatureError as e:
        raise _http_error(e)
    return feature_to_dict(feature)


@router.post("/{key}/rules/move")
async def move_rule(
    key: str,
    data: RuleMove,
    features: Features,
    api_key: ManagementKey,
) -> dict[str, Any]:
    """Move one rule within an environment: {"environment", "from", "to"}."""
    try:
        feature = await features.move_rule(
            api_key.org_id,
            key,
            data.environment,
            data.from_index,
            data.to_index,
        )
    except FeatureError as e:
        raise _http_error(e)
    return feature_to_dict(feature)
