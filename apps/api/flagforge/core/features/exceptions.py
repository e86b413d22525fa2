"""
Feature errors.

Raised for caller-input problems only. Malformed stored data never raises;
the compiler substitutes fallback values instead.
"""


class FeatureError(ValueError):
    """Base class for rejected feature operations."""
    pass


class FeatureValidationError(FeatureError):
    """Create/update request failed validation. Nothing was stored."""
    pass


class FeatureNotFoundError(FeatureError):
    """No feature with the given key in the organization."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Feature '{key}' not found")


class DraftConflictError(FeatureError):
    """The draft changed since the caller last reviewed it."""

    def __init__(self):
        super().__init__(
            "New changes have been made to this feature. Please review and try again."
        )


class PayloadEncryptionError(FeatureError):
    """SDK payload could not be encrypted with the configured key."""
    pass
