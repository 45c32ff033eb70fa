"""SQLAlchemy models package."""

from taskhub.models.organization import Organization
from taskhub.models.user import User
from taskhub.models.task import Task, TaskComment, TaskTemplate
from taskhub.models.activity import AuditLog, Notification

__all__ = [
    # Tenancy
    "Organization",
    "User",
    # Tasks
    "Task",
    "TaskComment",
    "TaskTemplate",
    # Audit & Notifications
    "AuditLog",
    "Notification",
]
