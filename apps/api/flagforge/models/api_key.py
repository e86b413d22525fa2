"""
API Key model.
"""

from datetime import datetime, timezone
from uuid import UUID
from enum import Enum
from sqlalchemy import Boolean, String, ForeignKey, DateTime, Integer, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID

from .base import Base, TimestampMixin, UUIDMixin, JSONType


class APIKeyType(str, Enum):
    """API key types."""
    MASTER = "master"   # Full access
    SERVER = "server"   # Feature management
    CLIENT = "client"   # SDK payload only, safe to embed in apps


class APIKey(Base, UUIDMixin, TimestampMixin):
    """
    API Key model.

    Client keys are SDK connections: they carry the environment and
    project scope of the payload they may fetch, and whether that payload
    is encrypted.
    """

    __tablename__ = "api_keys"

    # Key identification (prefix visible, hash stored)
    key_prefix: Mapped[str] = mapped_column(String(10), nullable=False)
    key_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
    )

    # Metadata
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    key_type: Mapped[APIKeyType] = mapped_column(
        SQLEnum(APIKeyType),
        default=APIKeyType.CLIENT,
        nullable=False,
    )

    # Scope
    org_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # SDK payload parameters (client keys)
    environment: Mapped[str | None] = mapped_column(String(100), nullable=True)
    projects: Mapped[list[str]] = mapped_column(JSONType, default=list)
    encrypt_payload: Mapped[bool] = mapped_column(Boolean, default=False)
    encryption_key: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Limits
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Usage
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    use_count: Mapped[int] = mapped_column(Integer, default=0)

    # Relationships
    org: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="api_keys",
    )

    def __repr__(self) -> str:
        return f"<APIKey {self.key_prefix}*** ({self.name})>"

    @property
    def is_expired(self) -> bool:
        """Check if key is expired."""
        if not self.expires_at:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) > expires_at

    @property
    def can_manage_features(self) -> bool:
        return self.key_type in (APIKeyType.MASTER, APIKeyType.SERVER)


# Import at bottom
from .org import Organization
