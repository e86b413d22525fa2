"""
Organization model.
"""

from typing import Any
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDMixin, JSONType


class Organization(Base, UUIDMixin, TimestampMixin):
    """
    Organization model.

    `settings["environments"]` holds the environment definitions used to
    scope SDK payloads:

        [{"id": "production", "description": "", "projects": ["prj_web"]}]
    """

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )

    # Settings
    settings: Mapped[dict] = mapped_column(JSONType, default=dict)

    # Relationships
    projects: Mapped[list["Project"]] = relationship(
        "Project",
        back_populates="org",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    api_keys: Mapped[list["APIKey"]] = relationship(
        "APIKey",
        back_populates="org",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    webhooks: Mapped[list["Webhook"]] = relationship(
        "Webhook",
        back_populates="org",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Organization {self.slug}>"

    @property
    def environments(self) -> list[dict[str, Any]]:
        """Environment definitions from settings."""
        return list((self.settings or {}).get("environments") or [])


# Import at bottom to avoid circular imports
from .project import Project
from .api_key import APIKey
from .webhook import Webhook
