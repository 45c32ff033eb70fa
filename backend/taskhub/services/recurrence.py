"""Recurring task generation.

A recurring task is its own template: on each due date the scheduler spawns a
plain one-off copy and moves the template's ``next_recurrence`` forward by
one cadence from its previous value.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.models.task import RECURRENCE_CADENCES, Task
from taskhub.services.audit import AuditRecorder

logger = structlog.get_logger()


def _add_months(from_date: date, months: int) -> date:
    """Calendar-month arithmetic, clamping to the target month's last day."""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return from_date.replace(year=year, month=month, day=min(from_date.day, last_day))


def add_cadence(from_date: date, cadence: str) -> date:
    """Advance a date by one recurrence unit."""
    if cadence == "daily":
        return from_date + timedelta(days=1)
    if cadence == "weekly":
        return from_date + timedelta(weeks=1)
    if cadence == "monthly":
        return _add_months(from_date, 1)
    raise ValueError(f"Unknown recurrence cadence '{cadence}'")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def initial_next_recurrence(cadence: str, today: date | None = None) -> date:
    """First due date for a task that just became recurring."""
    return add_cadence(today or utc_today(), cadence)


def apply_recurrence(
    task: Task,
    is_recurring: bool,
    recurrence: str | None,
    today: date | None = None,
) -> None:
    """
    Update a task's recurrence fields on create or update.

    ``next_recurrence`` is recomputed only when recurrence is newly set or the
    cadence changed; turning recurrence off clears it.
    """
    if recurrence is not None and recurrence not in RECURRENCE_CADENCES:
        raise ValueError(f"Unknown recurrence cadence '{recurrence}'")

    previous = task.recurrence if task.is_recurring else None
    task.is_recurring = is_recurring
    task.recurrence = recurrence

    if not is_recurring or not recurrence:
        task.next_recurrence = None
        return

    if task.next_recurrence is None or previous != recurrence:
        task.next_recurrence = initial_next_recurrence(recurrence, today)


@dataclass
class TickResult:
    """Summary of one scheduler run."""

    due: int = 0
    created: int = 0
    failed: int = 0
    created_task_ids: list[UUID] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "due": self.due,
            "created": self.created,
            "failed": self.failed,
            "created_task_ids": [str(i) for i in self.created_task_ids],
        }


class RecurrenceScheduler:
    """Spawns task instances from due recurring tasks."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        audit: AuditRecorder | None = None,
    ):
        self.session_factory = session_factory
        self.audit = audit or AuditRecorder(session_factory)

    async def run_tick(self, today: date | None = None) -> TickResult:
        """Process every recurring task due on or before ``today``."""
        today = today or utc_today()
        result = TickResult()

        async with self.session_factory() as session:
            due_ids = (
                await session.execute(
                    select(Task.id)
                    .where(
                        Task.is_recurring.is_(True),
                        Task.next_recurrence.is_not(None),
                        Task.next_recurrence <= today,
                    )
                    .order_by(Task.next_recurrence.asc(), Task.id.asc())
                )
            ).scalars().all()

        result.due = len(due_ids)

        for task_id in due_ids:
            try:
                spawned = await self._spawn(task_id, today)
            except Exception as e:
                result.failed += 1
                logger.error(
                    "recurring_task_creation_failed",
                    task_id=str(task_id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if spawned is not None:
                result.created += 1
                result.created_task_ids.append(spawned)

        logger.info(
            "recurring_tasks_processed",
            due=result.due,
            created=result.created,
            failed=result.failed,
        )
        return result

    async def _spawn(self, task_id: UUID, today: date) -> UUID | None:
        async with self.session_factory() as session:
            source = (
                await session.execute(select(Task).where(Task.id == task_id))
            ).scalar_one_or_none()

            # Another worker may have advanced or disabled it since selection
            if (
                source is None
                or not source.is_recurring
                or source.next_recurrence is None
                or source.next_recurrence > today
            ):
                return None

            instance = Task(
                organization_id=source.organization_id,
                title=source.title,
                description=source.description,
                status="open",
                priority=source.priority,
                assignee_id=source.assignee_id,
                created_by_id=source.created_by_id,
                tags=list(source.tags or []),
                due_date=None,
                is_recurring=False,
                recurrence=None,
                next_recurrence=None,
                source_task_id=source.id,
            )
            session.add(instance)

            source.next_recurrence = add_cadence(source.next_recurrence, source.recurrence)

            await session.commit()

            organization_id = source.organization_id
            instance_id = instance.id
            title = instance.title
            next_recurrence = source.next_recurrence

        logger.info(
            "recurring_task_created",
            task_id=str(instance_id),
            source_task_id=str(task_id),
            organization_id=str(organization_id),
            next_recurrence=next_recurrence.isoformat(),
        )

        await self.audit.record_system(
            organization_id=organization_id,
            action="created_recurring",
            resource="task",
            resource_id=instance_id,
            changes={"title": title, "from_task": task_id},
        )
        return instance_id
