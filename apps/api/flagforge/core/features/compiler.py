"""
Feature definition compiler.

Turns stored features into the minimal definitions delivered to SDKs:

    {
        "show-banner": {
            "defaultValue": True,
            "rules": [{"force": False, "coverage": 1, "hashAttribute": "id"}],
        }
    }

Everything here is synchronous and side-effect free. Malformed stored data
(bad JSON conditions, unparseable namespace ranges, bad values) falls back
locally and never aborts a compilation.
"""

import math
from typing import Any, Iterable

from .interfaces import FeatureInterface, FeatureRule, RuleType
from .values import ParseResult, coerce_value, parse_float, parse_json

# Environment used when the caller does not name one
DEFAULT_ENVIRONMENT = "production"

EMPTY_CONDITION = "{}"


def clamp(value: float, low: float = 0, high: float = 1) -> float:
    """Clamp value into [low, high]."""
    return low if value < low else high if value > high else value


def normalize_weight(weight: float) -> float:
    """
    Clamp a variation weight to [0, 1] and round it to 3 decimals.

    Rounds half away from zero (0.0625 -> 0.063). Weights of a rule are not
    renormalized to sum to 1.
    """
    return math.floor(clamp(weight) * 1000 + 0.5) / 1000


def parse_condition(condition: str | None) -> ParseResult:
    """
    Parsed targeting condition.

    Absent, empty ("{}") and malformed conditions are failures. Any valid
    JSON value is passed through as is; SDKs decide what to do with it.
    """
    if not condition or condition == EMPTY_CONDITION:
        return ParseResult.failure()
    return parse_json(condition)


def compile_rule(rule: FeatureRule, value_type: str) -> dict[str, Any] | None:
    """
    Compile one stored rule.

    Returns None (rule is dropped) only for unknown rule types. Optional
    fields are left out instead of being emitted as null.
    """
    compiled: dict[str, Any] = {}

    condition = parse_condition(rule.condition)
    if condition.ok:
        compiled["condition"] = condition.value

    if rule.type == RuleType.FORCE:
        compiled["force"] = coerce_value(value_type, rule.value)

    elif rule.type == RuleType.EXPERIMENT:
        compiled["variations"] = [coerce_value(value_type, v.value) for v in rule.values]
        compiled["coverage"] = rule.coverage
        compiled["weights"] = [normalize_weight(clamp(v.weight)) for v in rule.values]

        if rule.tracking_key:
            compiled["key"] = rule.tracking_key
        if rule.hash_attribute:
            compiled["hashAttribute"] = rule.hash_attribute

        namespace = rule.namespace
        if namespace and namespace.enabled and namespace.name:
            low, high = (list(namespace.range) + [None, None])[:2]
            compiled["namespace"] = [
                namespace.name,
                _bound(low),
                _bound(high),
            ]

    elif rule.type == RuleType.ROLLOUT:
        compiled["force"] = coerce_value(value_type, rule.value)
        compiled["coverage"] = clamp(rule.coverage)
        if rule.hash_attribute:
            compiled["hashAttribute"] = rule.hash_attribute

    else:
        return None

    return compiled


def _bound(raw: Any) -> float | None:
    # Unparseable bounds are 0; infinite ones are None (null)
    value = parse_float(raw).or_else(0.0)
    if math.isinf(value):
        return None
    return value or 0


def compile_feature(
    feature: FeatureInterface,
    environment: str = DEFAULT_ENVIRONMENT,
) -> dict[str, Any] | None:
    """
    Compile one feature for an environment.

    Returns None when the feature is archived, has no settings for the
    environment or is disabled there.
    """
    settings = feature.environment_settings.get(environment)
    if feature.archived or settings is None or not settings.enabled:
        return None

    definition: dict[str, Any] = {
        "defaultValue": coerce_value(feature.value_type, feature.default_value),
    }

    rules = [
        compiled
        for compiled in (
            compile_rule(rule, feature.value_type)
            for rule in settings.rules
            if rule.enabled
        )
        if compiled is not None
    ]
    # No "rules" key at all means no rule applies
    if rules:
        definition["rules"] = rules

    return definition


def assemble_feature_definitions(
    features: Iterable[FeatureInterface],
    environment: str = DEFAULT_ENVIRONMENT,
) -> dict[str, dict[str, Any]]:
    """
    Build the SDK feature mapping for one environment.

    `features` must already be limited to the allowed projects. Skipped
    features get no entry at all.
    """
    definitions: dict[str, dict[str, Any]] = {}
    for feature in features:
        definition = compile_feature(feature, environment)
        if definition is not None:
            definitions[feature.key] = definition
    return definitions


def get_enabled_environments(feature: FeatureInterface) -> list[str]:
    """Environments in which the feature is switched on."""
    return [
        env
        for env, settings in feature.environment_settings.items()
        if settings.enabled
    ]
