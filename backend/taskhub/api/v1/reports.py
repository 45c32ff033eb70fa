"""Report endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from taskhub.api.deps import Scope, require_permission
from taskhub.core.responses import Envelope, ok
from taskhub.services import reports

router = APIRouter(
    tags=["reports"],
    dependencies=[Depends(require_permission("read", "reports"))],
)


class StatusCount(BaseModel):
    status: str
    count: int


class PriorityCount(BaseModel):
    priority: str
    count: int


class TaskDistribution(BaseModel):
    """Task counts by status and by priority."""

    by_status: list[StatusCount]
    by_priority: list[PriorityCount]


class DailyCount(BaseModel):
    date: str
    count: int


class WorkloadRow(BaseModel):
    """Tasks assigned to one user, by status."""

    user_id: UUID
    user_name: str
    user_email: str
    total: int
    open: int
    in_progress: int
    review: int
    done: int


@router.get("/task-distribution", response_model=Envelope[TaskDistribution])
async def task_distribution(scope: Scope) -> dict:
    return ok(await reports.task_distribution(scope))


@router.get("/tasks-over-time", response_model=Envelope[list[DailyCount]])
async def tasks_over_time(scope: Scope, days: int = Query(30, ge=1, le=365)) -> dict:
    """Tasks completed per day over the last ``days`` days."""
    return ok(await reports.tasks_over_time(scope, days=days))


@router.get("/team-workload", response_model=Envelope[list[WorkloadRow]])
async def team_workload(scope: Scope) -> dict:
    """Per-assignee task counts, busiest first."""
    return ok(await reports.team_workload(scope))
