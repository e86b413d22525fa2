"""
Database models.
"""

from .base import (
    Base,
    TimestampMixin,
    UUIDMixin,
    JSONType,
)
from .org import Organization
from .project import Project
from .api_key import APIKey, APIKeyType
from .webhook import Webhook, WebhookLog

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "JSONType",
    # Models
    "Organization",
    "Project",
    "APIKey",
    "APIKeyType",
    "Webhook",
    "WebhookLog",
]
