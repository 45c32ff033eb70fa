"""Task, comment and template models."""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskhub.db.base import BaseModel, JSONType, OrgScopedMixin

if TYPE_CHECKING:
    from taskhub.models.user import User


TASK_STATUSES = ("open", "in_progress", "review", "done")
TASK_PRIORITIES = ("low", "medium", "high", "critical")
RECURRENCE_CADENCES = ("daily", "weekly", "monthly")


class Task(OrgScopedMixin, BaseModel):
    """Unit of work owned by an organization."""

    __tablename__ = "tasks"

    # Basic info
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Status and priority
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="open", index=True
    )  # open, in_progress, review, done
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="medium"
    )  # low, medium, high, critical

    # Ownership and assignment
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    assignee_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Tags
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Timeline
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Recurrence: the recurring task acts as the template for spawned instances
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )  # daily, weekly, monthly
    next_recurrence: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)

    # Provenance of generated tasks
    source_task_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
    )
    template_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("task_templates.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    created_by: Mapped["User | None"] = relationship(
        "User", foreign_keys=[created_by_id], lazy="selectin"
    )
    assignee: Mapped["User | None"] = relationship(
        "User", foreign_keys=[assignee_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        try:
            return f"<Task {self.title[:30]}>"
        except Exception:
            return f"<Task id={self.id}>"


class TaskComment(OrgScopedMixin, BaseModel):
    """Comment on a task. Immutable once created."""

    __tablename__ = "task_comments"

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<TaskComment {self.id} on task={self.task_id}>"


class TaskTemplate(OrgScopedMixin, BaseModel):
    """Reusable blueprint for stamping out tasks."""

    __tablename__ = "task_templates"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_task_templates_org_name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    assignee_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    assignee: Mapped["User | None"] = relationship(
        "User", foreign_keys=[assignee_id], lazy="selectin"
    )
    created_by: Mapped["User | None"] = relationship(
        "User", foreign_keys=[created_by_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<TaskTemplate {self.name}>"
