"""
Tests for environment project scoping.
"""

from flagforge.core.features.projects import (
    Environment,
    filter_projects_by_environment,
    find_environment,
)


def test_no_environment_keeps_scope():
    assert filter_projects_by_environment(["a", "b"], None) == ["a", "b"]


def test_unrestricted_environment_keeps_scope():
    env = Environment(id="production")
    assert filter_projects_by_environment(["a"], env, apply_to_all=True) == ["a"]
    assert filter_projects_by_environment([], env, apply_to_all=True) == []


def test_empty_scope_uses_environment_projects():
    env = Environment(id="production", projects=["a", "b"])
    assert filter_projects_by_environment([], env, apply_to_all=True) == ["a", "b"]
    assert filter_projects_by_environment([], env) == []


def test_intersection_preserves_requester_order():
    env = Environment(id="production", projects=["a", "b", "c"])
    assert filter_projects_by_environment(["c", "x", "a"], env) == ["c", "a"]


def test_disjoint_scope_permits_nothing():
    """None, not [], so callers never mistake it for "all projects"."""
    env = Environment(id="production", projects=["a"])
    assert filter_projects_by_environment(["b"], env, apply_to_all=True) is None


def test_find_environment():
    environments = [
        {"id": "staging", "projects": ["a"]},
        {"id": "production", "description": "Live", "projects": None},
    ]
    env = find_environment(environments, "production")
    assert env == Environment(id="production", description="Live", projects=[])
    assert find_environment(environments, "dev") is None
    assert find_environment(None, "dev") is None
