"""Services package."""

from taskhub.services.activity import ActivityService
from taskhub.services.audit import AuditRecorder
from taskhub.services.notification import NotificationService
from taskhub.services.recurrence import RecurrenceScheduler
from taskhub.services.task import TaskService
from taskhub.services.tenant_scope import TenantScope

__all__ = [
    "ActivityService",
    "AuditRecorder",
    "NotificationService",
    "RecurrenceScheduler",
    "TaskService",
    "TenantScope",
]
