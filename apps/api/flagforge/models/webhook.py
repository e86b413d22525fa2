"""Webhook model for outbound change notifications."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDMixin, JSONType


class Webhook(Base, UUIDMixin, TimestampMixin):
    """
    Webhook configuration for sending events to external URLs.

    `environments` and `projects` narrow which feature changes are sent;
    an empty list matches everything.
    """

    __tablename__ = "webhooks"

    org_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"))

    name: Mapped[str] = mapped_column(String(255))
    url: Mapped[str] = mapped_column(String(2048))
    secret: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Event types to subscribe to (e.g., ["features.updated"]), empty = all
    events: Mapped[list[str]] = mapped_column(JSONType, default=list)
    environments: Mapped[list[str]] = mapped_column(JSONType, default=list)
    projects: Mapped[list[str]] = mapped_column(JSONType, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    headers: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)  # Custom headers

    # Stats
    last_triggered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    failure_count: Mapped[int] = mapped_column(default=0)

    # Auto-disable after N consecutive failures
    max_failures: Mapped[int] = mapped_column(default=5)

    # Relationships
    org: Mapped["Organization"] = relationship(back_populates="webhooks")
    logs: Mapped[list["WebhookLog"]] = relationship(back_populates="webhook", cascade="all, delete-orphan")

    def matches(self, event_type: str, environments: list[str], projects: list[str]) -> bool:
        """Whether a change touching these environments/projects concerns this webhook."""
        if not self.is_active:
            return False
        if self.events and event_type not in self.events:
            return False
        if self.environments and not set(self.environments) & set(environments):
            return False
        if self.projects and not set(self.projects) & set(projects):
            return False
        return True


class WebhookLog(Base, UUIDMixin):
    """Log of webhook delivery attempts."""

    __tablename__ = "webhook_logs"

    webhook_id: Mapped[UUID] = mapped_column(ForeignKey("webhooks.id", ondelete="CASCADE"))

    event_type: Mapped[str] = mapped_column(String(100))
    payload: Mapped[dict] = mapped_column(JSONType)

    # Response details
    response_status: Mapped[Optional[int]] = mapped_column(nullable=True)
    response_time_ms: Mapped[Optional[int]] = mapped_column(nullable=True)

    success: Mapped[bool] = mapped_column(Boolean, default=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    webhook: Mapped["Webhook"] = relationship(back_populates="logs")


# Import at bottom
from .org import Organization
