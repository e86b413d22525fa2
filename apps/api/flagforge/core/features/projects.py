"""
Environment project scoping.

An environment may be restricted to a set of projects. That restriction is
applied to the project scope a requester asks for before any feature is
loaded, so a payload never contains projects the environment excludes.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Environment:
    """An organization environment (production, staging, ...)."""
    id: str
    description: str = ""
    projects: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Environment":
        return cls(
            id=data["id"],
            description=data.get("description") or "",
            projects=list(data.get("projects") or []),
        )


def find_environment(environments: list[dict[str, Any]] | None, environment_id: str) -> Environment | None:
    """Look up an environment definition in organization settings."""
    for env in environments or []:
        if env.get("id") == environment_id:
            return Environment.from_dict(env)
    return None


def filter_projects_by_environment(
    projects: list[str],
    environment: Environment | None,
    apply_to_all: bool = False,
) -> list[str] | None:
    """
    Narrow a requested project scope to what the environment permits.

    An empty list means "all projects". None means that nothing is
    permitted: the requester asked for specific projects and none of them
    is allowed in this environment.

    Args:
        projects: Project ids the requester is scoped to
        environment: Environment definition, if the organization has one
        apply_to_all: When the requester has no scope, use the
            environment's own restriction instead of "all projects"
    """
    if environment is None or not environment.projects:
        return list(projects)

    if not projects:
        return list(environment.projects) if apply_to_all else []

    allowed = [p for p in projects if p in environment.projects]
    return allowed or None
