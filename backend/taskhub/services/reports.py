"""Dashboard statistics and report aggregations."""

from collections import Counter
from datetime import datetime, timedelta, timezone

from sqlalchemy import case, func, select

from taskhub.models.task import Task
from taskhub.models.user import User
from taskhub.services.tenant_scope import TenantScope


async def dashboard_stats(scope: TenantScope, now: datetime | None = None) -> dict:
    """Headline task counts for an organization."""
    now = now or datetime.now(timezone.utc)

    # One AsyncSession cannot run statements concurrently; keep these sequential
    total_tasks = await scope.count(Task)
    open_tasks = await scope.count(Task, Task.status == "open")
    in_progress_tasks = await scope.count(Task, Task.status == "in_progress")
    done_tasks = await scope.count(Task, Task.status == "done")
    total_users = await scope.count(User)
    overdue_tasks = await scope.count(
        Task,
        Task.due_date.is_not(None),
        Task.due_date < now,
        Task.status != "done",
    )

    return {
        "total_tasks": total_tasks,
        "open_tasks": open_tasks,
        "in_progress_tasks": in_progress_tasks,
        "done_tasks": done_tasks,
        "overdue_tasks": overdue_tasks,
        "total_users": total_users,
        "completion_rate": round(done_tasks / total_tasks * 100) if total_tasks else 0,
    }


async def task_distribution(scope: TenantScope) -> dict:
    """Task counts grouped by status and by priority."""
    by_status = await scope.db.execute(
        select(Task.status, func.count(Task.id))
        .where(Task.organization_id == scope.organization_id)
        .group_by(Task.status)
        .order_by(Task.status)
    )
    by_priority = await scope.db.execute(
        select(Task.priority, func.count(Task.id))
        .where(Task.organization_id == scope.organization_id)
        .group_by(Task.priority)
        .order_by(Task.priority)
    )
    return {
        "by_status": [{"status": s, "count": c} for s, c in by_status.all()],
        "by_priority": [{"priority": p, "count": c} for p, c in by_priority.all()],
    }


async def tasks_over_time(
    scope: TenantScope, days: int = 30, now: datetime | None = None
) -> list[dict]:
    """Tasks completed per UTC day over the trailing window, oldest first."""
    now = now or datetime.now(timezone.utc)
    start = now - timedelta(days=days)

    result = await scope.db.execute(
        select(Task.completed_at).where(
            Task.organization_id == scope.organization_id,
            Task.completed_at.is_not(None),
            Task.completed_at >= start,
        )
    )

    per_day: Counter[str] = Counter()
    for (completed_at,) in result.all():
        if completed_at.tzinfo is not None:
            completed_at = completed_at.astimezone(timezone.utc)
        per_day[completed_at.date().isoformat()] += 1

    return [{"date": day, "count": per_day[day]} for day in sorted(per_day)]


async def team_workload(scope: TenantScope) -> list[dict]:
    """Per-assignee task counts by status, busiest first."""
    result = await scope.db.execute(
        select(
            User.id,
            User.name,
            User.email,
            func.count(Task.id).label("total"),
            func.count(case((Task.status == "open", 1))).label("open"),
            func.count(case((Task.status == "in_progress", 1))).label("in_progress"),
            func.count(case((Task.status == "review", 1))).label("review"),
            func.count(case((Task.status == "done", 1))).label("done"),
        )
        .select_from(Task)
        .join(User, User.id == Task.assignee_id)
        .where(
            Task.organization_id == scope.organization_id,
            User.organization_id == scope.organization_id,
        )
        .group_by(User.id, User.name, User.email)
        .order_by(func.count(Task.id).desc(), User.name)
    )
    return [
        {
            "user_id": row.id,
            "user_name": row.name,
            "user_email": row.email,
            "total": row.total,
            "open": row.open,
            "in_progress": row.in_progress,
            "review": row.review,
            "done": row.done,
        }
        for row in result.all()
    ]
