"""
Project model.
"""

from uuid import UUID
from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID

from .base import Base, TimestampMixin, UUIDMixin


class Project(Base, UUIDMixin, TimestampMixin):
    """
    Project model.

    Features and environments refer to projects by str(id).
    """

    __tablename__ = "projects"

    org_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Relationships
    org: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="projects",
    )

    def __repr__(self) -> str:
        return f"<Project {self.name}>"


# Import at bottom
from .org import Organization
