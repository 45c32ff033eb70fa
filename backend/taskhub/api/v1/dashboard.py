"""Dashboard statistics endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from taskhub.api.deps import Scope, require_permission
from taskhub.core.responses import Envelope, ok
from taskhub.services.reports import dashboard_stats

router = APIRouter(tags=["dashboard"])


class DashboardStats(BaseModel):
    """Headline counts for the dashboard."""

    total_tasks: int
    open_tasks: int
    in_progress_tasks: int
    done_tasks: int
    overdue_tasks: int
    total_users: int
    completion_rate: int


@router.get(
    "/stats",
    response_model=Envelope[DashboardStats],
    dependencies=[Depends(require_permission("read", "dashboard"))],
)
async def get_stats(scope: Scope) -> dict:
    """Task and user counts plus the completion rate (percent)."""
    return ok(await dashboard_stats(scope))
