# tests/test_recurrence.py - Recurrence arithmetic and the scheduler tick
from datetime import date
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from taskhub import tasks as celery_tasks
from taskhub.models.activity import AuditLog
from taskhub.models.task import Task
from taskhub.services.recurrence import (
    RecurrenceScheduler,
    add_cadence,
    apply_recurrence,
)
from tests.conftest import auth_headers, create_task_via_api, org_url


class TestAddCadence:
    def test_daily(self):
        assert add_cadence(date(2024, 2, 28), "daily") == date(2024, 2, 29)

    def test_weekly(self):
        assert add_cadence(date(2024, 12, 28), "weekly") == date(2025, 1, 4)

    def test_monthly(self):
        assert add_cadence(date(2024, 3, 15), "monthly") == date(2024, 4, 15)

    def test_monthly_clamps_to_leap_day(self):
        assert add_cadence(date(2024, 1, 31), "monthly") == date(2024, 2, 29)

    def test_monthly_clamps_in_common_year(self):
        assert add_cadence(date(2023, 1, 31), "monthly") == date(2023, 2, 28)

    def test_monthly_rolls_over_year(self):
        assert add_cadence(date(2024, 12, 31), "monthly") == date(2025, 1, 31)

    def test_unknown_cadence(self):
        with pytest.raises(ValueError):
            add_cadence(date(2024, 1, 1), "yearly")


class TestApplyRecurrence:
    def _task(self, **overrides):
        fields = {"is_recurring": False, "recurrence": None, "next_recurrence": None}
        fields.update(overrides)
        return SimpleNamespace(**fields)

    def test_enabling_sets_next_date(self):
        task = self._task()
        apply_recurrence(task, True, "weekly", today=date(2024, 5, 1))
        assert task.next_recurrence == date(2024, 5, 8)

    def test_disabling_clears_next_date(self):
        task = self._task(is_recurring=True, recurrence="daily", next_recurrence=date(2024, 5, 2))
        apply_recurrence(task, False, None, today=date(2024, 5, 1))
        assert task.is_recurring is False
        assert task.next_recurrence is None

    def test_same_cadence_keeps_next_date(self):
        task = self._task(is_recurring=True, recurrence="daily", next_recurrence=date(2024, 6, 1))
        apply_recurrence(task, True, "daily", today=date(2024, 5, 1))
        assert task.next_recurrence == date(2024, 6, 1)

    def test_cadence_change_recomputes(self):
        task = self._task(is_recurring=True, recurrence="daily", next_recurrence=date(2024, 5, 2))
        apply_recurrence(task, True, "monthly", today=date(2024, 5, 1))
        assert task.next_recurrence == date(2024, 6, 1)

    def test_invalid_cadence_rejected(self):
        with pytest.raises(ValueError):
            apply_recurrence(self._task(), True, "hourly")


async def add_recurring_task(db_session, user, title, cadence, next_recurrence, **extra):
    task = Task(
        organization_id=user.organization_id,
        title=title,
        description="Recurring chore",
        status="in_progress",
        priority="high",
        created_by_id=user.id,
        assignee_id=extra.pop("assignee_id", None),
        tags=["ops"],
        is_recurring=True,
        recurrence=cadence,
        next_recurrence=next_recurrence,
        **extra,
    )
    db_session.add(task)
    await db_session.commit()
    return task.id


async def count_rows(session_factory, model, *criteria):
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model).where(*criteria))
        return result.scalar_one()


async def load_task(session_factory, task_id):
    async with session_factory() as session:
        return (await session.execute(select(Task).where(Task.id == task_id))).scalar_one()


class TestSchedulerTick:
    @pytest.mark.asyncio
    async def test_nothing_due(self, db_session, session_factory, admin):
        await add_recurring_task(db_session, admin, "Weekly sync", "weekly", date(2024, 5, 10))

        result = await RecurrenceScheduler(session_factory).run_tick(today=date(2024, 5, 9))

        assert (result.due, result.created, result.failed) == (0, 0, 0)
        assert await count_rows(session_factory, Task) == 1
        assert await count_rows(session_factory, AuditLog) == 0

    @pytest.mark.asyncio
    async def test_monthly_instance_created(self, db_session, session_factory, admin, member):
        source_id = await add_recurring_task(
            db_session, admin, "Month-end close", "monthly", date(2024, 1, 31),
            assignee_id=member.id,
        )

        result = await RecurrenceScheduler(session_factory).run_tick(today=date(2024, 1, 31))

        assert result.due == 1
        assert result.created == 1
        assert result.failed == 0

        source = await load_task(session_factory, source_id)
        assert source.next_recurrence == date(2024, 2, 29)
        assert source.is_recurring is True

        instance = await load_task(session_factory, result.created_task_ids[0])
        assert instance.title == "Month-end close"
        assert instance.status == "open"
        assert instance.priority == "high"
        assert instance.tags == ["ops"]
        assert instance.assignee_id == member.id
        assert instance.organization_id == admin.organization_id
        assert instance.source_task_id == source_id
        assert instance.is_recurring is False
        assert instance.next_recurrence is None

    @pytest.mark.asyncio
    async def test_instance_gets_system_audit_entry(self, db_session, session_factory, admin):
        source_id = await add_recurring_task(db_session, admin, "Daily backup check", "daily", date(2024, 5, 1))

        result = await RecurrenceScheduler(session_factory).run_tick(today=date(2024, 5, 1))
        instance_id = result.created_task_ids[0]

        async with session_factory() as session:
            entries = (
                await session.execute(select(AuditLog).where(AuditLog.resource_id == instance_id))
            ).scalars().all()

        assert len(entries) == 1
        entry = entries[0]
        assert entry.action == "created_recurring"
        assert entry.resource == "task"
        assert entry.actor == "system"
        assert entry.user_id is None
        assert entry.ip_address == "system"
        assert entry.changes == {"title": "Daily backup check", "from_task": str(source_id)}

    @pytest.mark.asyncio
    async def test_overdue_task_advances_one_step(self, db_session, session_factory, admin):
        source_id = await add_recurring_task(db_session, admin, "Standup notes", "daily", date(2024, 5, 1))

        result = await RecurrenceScheduler(session_factory).run_tick(today=date(2024, 5, 4))

        assert result.created == 1
        source = await load_task(session_factory, source_id)
        assert source.next_recurrence == date(2024, 5, 2)

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_other_tasks(self, db_session, session_factory, admin):
        await add_recurring_task(db_session, admin, "Broken cadence", "yearly", date(2024, 5, 1))
        good_id = await add_recurring_task(db_session, admin, "Weekly report", "weekly", date(2024, 5, 1))

        result = await RecurrenceScheduler(session_factory).run_tick(today=date(2024, 5, 1))

        assert result.due == 2
        assert result.created == 1
        assert result.failed == 1

        good = await load_task(session_factory, good_id)
        assert good.next_recurrence == date(2024, 5, 8)
        assert await count_rows(session_factory, Task, Task.source_task_id == good_id) == 1

    @pytest.mark.asyncio
    async def test_disabled_task_is_not_processed(self, db_session, session_factory, admin):
        await add_recurring_task(
            db_session, admin, "Paused", "daily", date(2024, 5, 1)
        )
        async with session_factory() as session:
            task = (await session.execute(select(Task))).scalar_one()
            task.is_recurring = False
            await session.commit()

        result = await RecurrenceScheduler(session_factory).run_tick(today=date(2024, 5, 1))
        assert result.due == 0

    @pytest.mark.asyncio
    async def test_tick_summary_serializes(self, db_session, session_factory, admin):
        await add_recurring_task(db_session, admin, "Daily", "daily", date(2024, 5, 1))

        result = await RecurrenceScheduler(session_factory).run_tick(today=date(2024, 5, 1))
        summary = result.to_dict()

        assert summary["created"] == 1
        assert summary["created_task_ids"] == [str(result.created_task_ids[0])]


class TestRecurringTaskApi:
    @pytest.mark.asyncio
    async def test_create_recurring_task_schedules_next_date(self, client, admin):
        task = await create_task_via_api(
            client, admin, title="Water plants", is_recurring=True, recurrence="weekly"
        )
        assert task["is_recurring"] is True
        assert task["recurrence"] == "weekly"
        assert task["next_recurrence"] is not None

    @pytest.mark.asyncio
    async def test_turning_recurrence_off_clears_next_date(self, client, admin):
        task = await create_task_via_api(
            client, admin, title="Water plants", is_recurring=True, recurrence="daily"
        )

        resp = await client.put(
            org_url(admin.organization_id, f"/tasks/{task['id']}"),
            json={"is_recurring": False},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["is_recurring"] is False
        assert data["recurrence"] is None
        assert data["next_recurrence"] is None

    @pytest.mark.asyncio
    async def test_invalid_cadence_rejected(self, client, admin):
        resp = await client.post(
            org_url(admin.organization_id, "/tasks"),
            json={"title": "Yearly review", "is_recurring": True, "recurrence": "yearly"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400


class TestCeleryTask:
    def test_success_summary(self, monkeypatch):
        async def fake_tick(today=None):
            return {"due": 2, "created": 2, "failed": 0, "created_task_ids": ["a", "b"]}

        monkeypatch.setattr(celery_tasks, "run_recurrence_tick", fake_tick)

        result = celery_tasks.process_recurring_tasks()

        assert result["status"] == "success"
        assert result["created"] == 2

    def test_never_raises(self, monkeypatch):
        async def broken_tick(today=None):
            raise ConnectionError("database unavailable")

        monkeypatch.setattr(celery_tasks, "run_recurrence_tick", broken_tick)

        result = celery_tasks.process_recurring_tasks()

        assert result == {"status": "error", "error": "database unavailable"}
