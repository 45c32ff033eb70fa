"""Task service: task CRUD, comments and template stamping.

Every write commits the request session first and only then records the
audit entry and dispatches notifications, each in its own session.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import or_

from taskhub.core.exceptions import SideEffectOutcome, ValidationError
from taskhub.db.base import utcnow
from taskhub.models.task import Task, TaskComment, TaskTemplate
from taskhub.models.user import User
from taskhub.services.audit import AuditRecorder
from taskhub.services.notification import NotificationService
from taskhub.services.recurrence import apply_recurrence
from taskhub.services.tenant_scope import TenantScope

logger = structlog.get_logger()

# Task attribute -> key used in audit snapshots
SNAPSHOT_FIELDS = {
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "assignee_id": "assigneeId",
    "tags": "tags",
    "due_date": "dueDate",
    "is_recurring": "isRecurring",
    "recurrence": "recurrence",
}


def task_snapshot(task: Task) -> dict[str, Any]:
    """Audit snapshot of the user-editable task fields."""
    return {key: getattr(task, attr) for attr, key in SNAPSHOT_FIELDS.items()}


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Strip blanks and duplicates, keeping first-seen order."""
    seen: list[str] = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def mark_completed(task: Task) -> None:
    """Stamp completed_at the first time a task reaches done. Never cleared."""
    if task.status == "done" and task.completed_at is None:
        task.completed_at = utcnow()


class TaskService:
    """Task operations for one authenticated user within one organization."""

    def __init__(
        self,
        scope: TenantScope,
        audit: AuditRecorder,
        notifications: NotificationService,
        user_id: UUID,
        ip_address: str | None = None,
    ):
        self.scope = scope
        self.db = scope.db
        self.audit = audit
        self.notifications = notifications
        self.user_id = user_id
        self.ip_address = ip_address

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_tasks(
        self,
        page: int,
        limit: int,
        status: str | None = None,
        priority: str | None = None,
        assignee_id: UUID | None = None,
        search: str | None = None,
    ) -> tuple[list[Task], int]:
        """Newest-first page of tasks matching the filters, plus total count."""
        criteria = []
        if status:
            criteria.append(Task.status == status)
        if priority:
            criteria.append(Task.priority == priority)
        if assignee_id:
            criteria.append(Task.assignee_id == assignee_id)
        if search:
            criteria.append(
                or_(
                    Task.title.ilike(f"%{search}%"),
                    Task.description.ilike(f"%{search}%"),
                )
            )

        total = await self.scope.count(Task, *criteria)
        result = await self.db.execute(
            self.scope.select(Task, *criteria)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_task(self, task_id: UUID) -> Task:
        return await self.scope.get_or_404(Task, task_id, "Task")

    async def list_comments(self, task_id: UUID) -> list[TaskComment]:
        await self.get_task(task_id)
        result = await self.db.execute(
            self.scope.select(TaskComment, TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at.asc(), TaskComment.id.asc())
        )
        return list(result.scalars().all())

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_task(
        self,
        title: str,
        description: str | None = None,
        status: str = "open",
        priority: str = "medium",
        assignee_id: UUID | None = None,
        tags: list[str] | None = None,
        due_date: datetime | None = None,
        is_recurring: bool = False,
        recurrence: str | None = None,
    ) -> Task:
        """Create a task; notifies the assignee when it is someone else."""
        if assignee_id is not None:
            await self._ensure_member(assignee_id)

        task = Task(
            title=title,
            description=description or "",
            status=status,
            priority=priority,
            assignee_id=assignee_id,
            created_by_id=self.user_id,
            tags=normalize_tags(tags),
            due_date=due_date,
        )
        apply_recurrence(task, is_recurring, recurrence)
        mark_completed(task)
        self.scope.add(task)
        await self._commit(task)

        logger.info(
            "task_created",
            task_id=str(task.id),
            organization_id=str(self.scope.organization_id),
            is_recurring=task.is_recurring,
        )

        await self._audit(
            "create",
            "task",
            task.id,
            {
                "title": task.title,
                "status": task.status,
                "priority": task.priority,
                "isRecurring": task.is_recurring,
                "recurrence": task.recurrence,
            },
        )
        await self._notify_assigned(task)
        return task

    async def update_task(self, task_id: UUID, changes: dict[str, Any]) -> Task:
        """
        Apply a partial update.

        Args:
            task_id: Task to update
            changes: Field name -> new value, only for fields the client sent

        Returns:
            The updated task
        """
        task = await self.get_task(task_id)
        before = task_snapshot(task)

        if changes.get("assignee_id") is not None:
            await self._ensure_member(changes["assignee_id"])

        for attr in ("title", "description", "status", "priority", "assignee_id", "due_date"):
            if attr in changes:
                setattr(task, attr, changes[attr])
        if task.description is None:
            task.description = ""
        if "tags" in changes:
            task.tags = normalize_tags(changes["tags"])

        if "is_recurring" in changes or "recurrence" in changes:
            is_recurring = changes.get("is_recurring", task.is_recurring)
            recurrence = changes.get("recurrence", task.recurrence) if is_recurring else None
            apply_recurrence(task, bool(is_recurring), recurrence)

        mark_completed(task)
        await self._commit(task)

        after = task_snapshot(task)
        logger.info(
            "task_updated",
            task_id=str(task.id),
            fields=sorted(changes),
        )

        await self._audit("update", "task", task.id, {"before": before, "after": after})

        if task.assignee_id is not None and task.assignee_id != before["assigneeId"]:
            await self._notify_assigned(task)

        if task.status != before["status"] and task.created_by_id is not None:
            self._report(
                await self.notifications.notify(
                    organization_id=self.scope.organization_id,
                    recipient_id=task.created_by_id,
                    notification_type="task_status_changed",
                    title="Task Status Updated",
                    message=(
                        f'Task "{task.title}" status changed from '
                        f'"{before["status"]}" to "{task.status}"'
                    ),
                    task_id=task.id,
                    triggered_by=self.user_id,
                )
            )
        return task

    async def delete_task(self, task_id: UUID) -> None:
        task = await self.get_task(task_id)
        title = task.title

        await self.db.delete(task)
        await self.db.commit()

        logger.info("task_deleted", task_id=str(task_id))
        await self._audit("delete", "task", task_id, {"title": title})

    async def add_comment(self, task_id: UUID, body: str) -> TaskComment:
        body = (body or "").strip()
        if not body:
            raise ValidationError("Comment body is required")

        await self.get_task(task_id)

        comment = TaskComment(task_id=task_id, user_id=self.user_id, body=body)
        self.scope.add(comment)
        await self.db.commit()
        await self.db.refresh(comment, attribute_names=["user"])

        await self._audit(
            "create",
            "task_comment",
            comment.id,
            {"taskId": task_id, "body": comment.body},
        )
        return comment

    async def create_from_template(self, template_id: UUID) -> Task:
        """Stamp a new open task from a template."""
        template = await self.scope.get_or_404(TaskTemplate, template_id, "Template")

        task = Task(
            title=template.title,
            description=template.description or "",
            status="open",
            priority=template.priority,
            assignee_id=template.assignee_id,
            created_by_id=self.user_id,
            tags=[],
            template_id=template.id,
        )
        self.scope.add(task)
        await self._commit(task)

        logger.info(
            "task_created_from_template",
            task_id=str(task.id),
            template_id=str(template.id),
        )

        await self._audit(
            "create",
            "task",
            task.id,
            {"title": task.title, "from_template": template.name},
        )
        await self._notify_assigned(task)
        return task

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _ensure_member(self, user_id: UUID) -> None:
        if await self.scope.count(User, User.id == user_id) == 0:
            raise ValidationError("Assignee must be a member of the organization")

    async def _commit(self, task: Task) -> None:
        await self.db.commit()
        await self.db.refresh(task, attribute_names=["assignee", "created_by"])

    async def _audit(
        self, action: str, resource: str, resource_id: UUID, changes: dict
    ) -> SideEffectOutcome:
        return self._report(
            await self.audit.record(
                organization_id=self.scope.organization_id,
                user_id=self.user_id,
                action=action,
                resource=resource,
                resource_id=resource_id,
                changes=changes,
                ip_address=self.ip_address,
            )
        )

    async def _notify_assigned(self, task: Task) -> SideEffectOutcome:
        return self._report(
            await self.notifications.notify(
                organization_id=self.scope.organization_id,
                recipient_id=task.assignee_id,
                notification_type="task_assigned",
                title="New Task Assigned",
                message=f'You have been assigned to task "{task.title}"',
                task_id=task.id,
                triggered_by=self.user_id,
            )
        )

    def _report(self, outcome: SideEffectOutcome) -> SideEffectOutcome:
        if not outcome.succeeded:
            logger.warning(
                "side_effect_failed",
                effect=outcome.effect,
                error=outcome.error,
            )
        return outcome
