"""Audit log and notification models."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskhub.db.base import Base, BaseModel, JSONType, OrgScopedMixin, UUIDMixin, utcnow

if TYPE_CHECKING:
    from taskhub.models.task import Task
    from taskhub.models.user import User


NOTIFICATION_TYPES = ("task_assigned", "task_status_changed")

SYSTEM_ACTOR = "system"


class AuditLog(OrgScopedMixin, UUIDMixin, Base):
    """
    Append-only audit trail entry.

    Written once by the audit recorder and never updated or deleted. Rows
    written by the recurring task scheduler have no user_id and
    actor='system'.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_resource", "organization_id", "resource", "resource_id"),
    )

    # Actor
    user_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    actor: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="user",
        comment="'user' for request-originated entries, 'system' for scheduler writes",
    )

    # What happened
    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Action verb (create, update, delete, created_recurring, ...)",
    )
    resource: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Resource name (task, task_comment, task_template, user, ...)",
    )
    resource_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )
    changes: Mapped[dict | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="{before, after} snapshots for updates, field snapshot otherwise",
    )

    # Request context
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False, default="unknown")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    # Relationships
    user: Mapped["User | None"] = relationship(
        "User",
        foreign_keys=[user_id],
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.resource} {self.resource_id}>"


class Notification(OrgScopedMixin, BaseModel):
    """In-app notification for a single recipient."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index(
            "ix_notifications_recipient_unread",
            "organization_id",
            "recipient_id",
            "is_read",
        ),
    )

    # Notification content
    notification_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="task_assigned or task_status_changed",
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Recipient
    recipient_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Related task
    task_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Triggering user
    triggered_by_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Status
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    triggered_by: Mapped["User"] = relationship(
        "User",
        foreign_keys=[triggered_by_id],
        lazy="selectin",
    )
    task: Mapped["Task | None"] = relationship(
        "Task",
        foreign_keys=[task_id],
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Notification {self.notification_type} to={self.recipient_id}>"
