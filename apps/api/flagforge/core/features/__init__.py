"""
Feature definitions and SDK payload compilation.

Stored features carry per-environment rule lists; the compiler turns
them into the flat definitions SDKs evaluate locally.

Usage:
    from flagforge.core.features import assemble_feature_definitions

    definitions = assemble_feature_definitions(features, "production")
    # {"show-banner": {"defaultValue": True, "rules": [{"force": False}]}}

Management goes through FeatureService; FastAPI wiring lives in
flagforge.core.features.dependencies (not imported here, it needs the
database layer).
"""

from .interfaces import (
    ExperimentValue,
    FeatureBackend,
    FeatureDraftChanges,
    FeatureEnvironment,
    FeatureInterface,
    FeatureRevision,
    FeatureRule,
    FeatureValueType,
    NamespaceValue,
    RuleType,
)
from .exceptions import (
    DraftConflictError,
    FeatureError,
    FeatureNotFoundError,
    FeatureValidationError,
    PayloadEncryptionError,
)
from .values import coerce_value, parse_default_value
from .compiler import (
    DEFAULT_ENVIRONMENT,
    assemble_feature_definitions,
    compile_feature,
    compile_rule,
    get_enabled_environments,
    normalize_weight,
)
from .projects import Environment, filter_projects_by_environment
from .encryption import decrypt_payload, encrypt_payload, generate_encryption_key

__all__ = [
    # Interfaces
    "ExperimentValue",
    "FeatureBackend",
    "FeatureDraftChanges",
    "FeatureEnvironment",
    "FeatureInterface",
    "FeatureRevision",
    "FeatureRule",
    "FeatureValueType",
    "NamespaceValue",
    "RuleType",
    # Errors
    "DraftConflictError",
    "FeatureError",
    "FeatureNotFoundError",
    "FeatureValidationError",
    "PayloadEncryptionError",
    # Compilation
    "DEFAULT_ENVIRONMENT",
    "assemble_feature_definitions",
    "coerce_value",
    "compile_feature",
    "compile_rule",
    "get_enabled_environments",
    "normalize_weight",
    "parse_default_value",
    # Projects
    "Environment",
    "filter_projects_by_environment",
    # Encryption
    "decrypt_payload",
    "encrypt_payload",
    "generate_encryption_key",
]
