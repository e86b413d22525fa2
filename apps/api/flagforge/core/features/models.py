"""
Feature Models - SQLAlchemy models for features.

Tables:
- features: Feature definitions; environment settings, draft and revision
  are stored as JSON documents in the camelCase layout of FeatureRule.to_dict()
"""

from uuid import UUID
from sqlalchemy import String, Boolean, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID as PGUUID

from flagforge.models.base import Base, TimestampMixin, UUIDMixin, JSONType


class FeatureModel(Base, UUIDMixin, TimestampMixin):
    """
    Stored feature.

    `key` is unique per organization and never changes after creation.
    """

    __tablename__ = "features"
    __table_args__ = (
        UniqueConstraint("org_id", "key", name="uq_features_org_key"),
    )

    org_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    project: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    owner: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Values
    value_type: Mapped[str] = mapped_column(String(20), nullable=False)
    default_value: Mapped[str] = mapped_column(Text, nullable=False)

    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list)

    # Example: {"production": {"enabled": true, "rules": [{"type": "force", ...}]}}
    environment_settings: Mapped[dict] = mapped_column(JSONType, default=dict)
    draft: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    revision: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    def __repr__(self) -> str:
        status = "ARCHIVED" if self.archived else self.value_type
        return f"<Feature {self.key} [{status}]>"
