"""Task activity timeline.

Rebuilds a human-readable, chronologically ordered event stream for a single
task by diffing the before/after snapshots stored in audit entries and
merging in the task's comments.

Ordering: events are sorted by timestamp with a stable sort. Audit-derived
events are emitted before comment events, so at equal timestamps audit
events come first; within each source the fetch order (timestamp, then id)
is kept, and the events derived from one audit entry keep their emission
order (status change before assignee change).
"""

from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import UUID

import structlog

from taskhub.models.activity import AuditLog
from taskhub.models.task import Task, TaskComment
from taskhub.services.tenant_scope import TenantScope

logger = structlog.get_logger()


STATUS_LABELS = {
    "open": "Open",
    "in_progress": "In Progress",
    "review": "Review",
    "done": "Done",
}


def status_label(status: Any) -> Any:
    """Display label for a task status; unknown values pass through."""
    return STATUS_LABELS.get(status, status)


class _Actor(Protocol):
    id: UUID
    name: str
    email: str


class _AuditEntry(Protocol):
    id: UUID
    action: str
    resource: str
    changes: dict | None
    timestamp: datetime
    user: _Actor | None


class _Comment(Protocol):
    id: UUID
    body: str
    created_at: datetime
    user: _Actor | None


@dataclass
class ActivityEvent:
    """One entry in a task's activity timeline."""

    type: str
    at: datetime
    actor: dict | None
    message: str
    meta: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def format_actor(user: _Actor | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def _sort_key(event: ActivityEvent) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC
    if event.at.tzinfo is None:
        return event.at.replace(tzinfo=timezone.utc)
    return event.at


def _events_for_update(
    entry: _AuditEntry, actor: dict | None, before: dict, after: dict
) -> list[ActivityEvent]:
    events = []
    ref = str(entry.id)

    status_after = after.get("status")
    if status_after and status_after != before.get("status"):
        events.append(
            ActivityEvent(
                type="status_changed",
                at=entry.timestamp,
                actor=actor,
                message=(
                    f'Changed status from "{status_label(before.get("status"))}" '
                    f'to "{status_label(status_after)}"'
                ),
                meta={"before": before.get("status"), "after": status_after, "audit_log_id": ref},
            )
        )

    assignee_after = after.get("assigneeId")
    if assignee_after and str(assignee_after) != str(before.get("assigneeId") or ""):
        events.append(
            ActivityEvent(
                type="assignee_changed",
                at=entry.timestamp,
                actor=actor,
                message="Changed the assignee",
                meta={
                    "before": before.get("assigneeId") or None,
                    "after": assignee_after,
                    "audit_log_id": ref,
                },
            )
        )

    if not events:
        events.append(
            ActivityEvent(
                type="task_updated",
                at=entry.timestamp,
                actor=actor,
                message="Updated the task",
                meta={"audit_log_id": ref},
            )
        )
    return events


def events_from_audit_entry(entry: _AuditEntry) -> list[ActivityEvent]:
    """Classify one audit entry into zero or more timeline events."""
    actor = format_actor(entry.user)
    ref = str(entry.id)

    if entry.action == "create":
        return [
            ActivityEvent("task_created", entry.timestamp, actor, "Created the task", {"audit_log_id": ref})
        ]

    if entry.action == "delete":
        return [
            ActivityEvent("task_deleted", entry.timestamp, actor, "Deleted the task", {"audit_log_id": ref})
        ]

    changes = entry.changes or {}
    before = changes.get("before")
    after = changes.get("after")
    if entry.action == "update" and isinstance(before, dict) and isinstance(after, dict):
        return _events_for_update(entry, actor, before, after)

    return [
        ActivityEvent(
            type="task_activity",
            at=entry.timestamp,
            actor=actor,
            message=f"{entry.action} {entry.resource}",
            meta={"audit_log_id": ref},
        )
    ]


def event_from_comment(comment: _Comment) -> ActivityEvent:
    return ActivityEvent(
        type="comment_added",
        at=comment.created_at,
        actor=format_actor(comment.user),
        message=comment.body,
        meta={"comment_id": str(comment.id)},
    )


def build_activity_timeline(
    audit_entries: Iterable[_AuditEntry],
    comments: Iterable[_Comment],
) -> list[ActivityEvent]:
    """
    Merge audit-derived events and comment events into one ordered list.

    Args:
        audit_entries: Task audit entries, ascending by timestamp
        comments: Task comments, ascending by creation time

    Returns:
        Events sorted non-decreasing by timestamp
    """
    events: list[ActivityEvent] = []
    for entry in audit_entries:
        events.extend(events_from_audit_entry(entry))
    for comment in comments:
        events.append(event_from_comment(comment))

    # Stable: equal timestamps keep emission order
    return sorted(events, key=_sort_key)


class ActivityService:
    """Loads the raw sources for a task timeline within a tenant scope."""

    def __init__(self, scope: TenantScope):
        self.scope = scope

    async def get_task_activity(self, task_id: UUID) -> list[ActivityEvent]:
        """Timeline for one task; NotFoundError if not in the caller's org."""
        await self.scope.get_or_404(Task, task_id, "Task")

        audit_entries = await self._audit_entries(task_id)
        comments = await self._comments(task_id)

        events = build_activity_timeline(audit_entries, comments)
        logger.debug(
            "task_activity_built",
            task_id=str(task_id),
            audit_entries=len(audit_entries),
            comments=len(comments),
            events=len(events),
        )
        return events

    async def _audit_entries(self, task_id: UUID) -> Sequence[AuditLog]:
        result = await self.scope.db.execute(
            self.scope.select(
                AuditLog,
                AuditLog.resource == "task",
                AuditLog.resource_id == task_id,
            ).order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
        )
        return result.scalars().all()

    async def _comments(self, task_id: UUID) -> Sequence[TaskComment]:
        result = await self.scope.db.execute(
            self.scope.select(TaskComment, TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at.asc(), TaskComment.id.asc())
        )
        return result.scalars().all()
