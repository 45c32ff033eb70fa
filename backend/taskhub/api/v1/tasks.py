"""Tasks API endpoints."""

from datetime import date, datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from taskhub.api.deps import Scope, Tasks, require_permission
from taskhub.config import get_settings
from taskhub.core.responses import Envelope, PageMeta, ok
from taskhub.services.activity import ActivityService

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()

STATUS_PATTERN = "^(open|in_progress|review|done)$"
PRIORITY_PATTERN = "^(low|medium|high|critical)$"
RECURRENCE_PATTERN = "^(daily|weekly|monthly)$"


# Request/Response Models
class TaskCreate(BaseModel):
    """Create a new task."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(None, max_length=20000)
    status: str = Field(default="open", pattern=STATUS_PATTERN)
    priority: str = Field(default="medium", pattern=PRIORITY_PATTERN)
    assignee_id: UUID | None = None
    tags: list[str] = Field(default_factory=list)
    due_date: datetime | None = None
    is_recurring: bool = False
    recurrence: str | None = Field(None, pattern=RECURRENCE_PATTERN)


class TaskUpdate(BaseModel):
    """Update a task. Only the fields sent are changed."""

    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, max_length=20000)
    status: str | None = Field(None, pattern=STATUS_PATTERN)
    priority: str | None = Field(None, pattern=PRIORITY_PATTERN)
    assignee_id: UUID | None = None
    tags: list[str] | None = None
    due_date: datetime | None = None
    is_recurring: bool | None = None
    recurrence: str | None = Field(None, pattern=RECURRENCE_PATTERN)


class TaskCommentCreate(BaseModel):
    """Create a task comment."""

    body: str = Field(..., min_length=1, max_length=10000)


class UserSummary(BaseModel):
    """Minimal user reference."""

    id: UUID
    name: str
    email: str

    class Config:
        from_attributes = True


class TaskResponse(BaseModel):
    """Task response."""

    id: UUID
    organization_id: UUID
    title: str
    description: str
    status: str
    priority: str
    assignee_id: UUID | None
    assignee: UserSummary | None = None
    created_by_id: UUID | None
    created_by: UserSummary | None = None
    tags: list[str]
    due_date: datetime | None
    completed_at: datetime | None
    is_recurring: bool
    recurrence: str | None
    next_recurrence: date | None
    source_task_id: UUID | None
    template_id: UUID | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskCommentResponse(BaseModel):
    """Task comment response."""

    id: UUID
    task_id: UUID
    user_id: UUID
    user: UserSummary | None = None
    body: str
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityItem(BaseModel):
    """One entry of a task's activity timeline."""

    type: str
    at: datetime
    actor: UserSummary | None
    message: str
    meta: dict


# Fields that cannot be cleared; an explicit null leaves them unchanged
_NON_NULLABLE_UPDATES = {"title", "status", "priority", "is_recurring", "tags"}


@router.get(
    "",
    response_model=Envelope[list[TaskResponse]],
    dependencies=[Depends(require_permission("read", "tasks"))],
)
async def list_tasks(
    tasks: Tasks,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    status: str | None = Query(None, pattern=STATUS_PATTERN),
    priority: str | None = Query(None, pattern=PRIORITY_PATTERN),
    assignee_id: UUID | None = None,
    search: str | None = Query(None, max_length=100),
) -> dict:
    """List tasks with filtering, newest first."""
    items, total = await tasks.list_tasks(
        page=page,
        limit=limit,
        status=status,
        priority=priority,
        assignee_id=assignee_id,
        search=search,
    )
    return ok(
        [TaskResponse.model_validate(t) for t in items],
        meta=PageMeta(page=page, limit=limit, total=total),
    )


@router.post(
    "",
    response_model=Envelope[TaskResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("create", "tasks"))],
)
async def create_task(request: TaskCreate, tasks: Tasks) -> dict:
    """Create a new task."""
    task = await tasks.create_task(**request.model_dump())
    return ok(TaskResponse.model_validate(task))


@router.get(
    "/{task_id}",
    response_model=Envelope[TaskResponse],
    dependencies=[Depends(require_permission("read", "tasks"))],
)
async def get_task(task_id: UUID, tasks: Tasks) -> dict:
    """Get a task by ID."""
    task = await tasks.get_task(task_id)
    return ok(TaskResponse.model_validate(task))


@router.put(
    "/{task_id}",
    response_model=Envelope[TaskResponse],
    dependencies=[Depends(require_permission("update", "tasks"))],
)
async def update_task(task_id: UUID, request: TaskUpdate, tasks: Tasks) -> dict:
    """Update a task."""
    changes = request.model_dump(exclude_unset=True)
    for field in _NON_NULLABLE_UPDATES:
        if field in changes and changes[field] is None:
            del changes[field]
    task = await tasks.update_task(task_id, changes)
    return ok(TaskResponse.model_validate(task))


@router.delete(
    "/{task_id}",
    response_model=Envelope[dict],
    dependencies=[Depends(require_permission("delete", "tasks"))],
)
async def delete_task(task_id: UUID, tasks: Tasks) -> dict:
    """Delete a task."""
    await tasks.delete_task(task_id)
    return ok({"message": "Task deleted"})


@router.get(
    "/{task_id}/activity",
    response_model=Envelope[list[ActivityItem]],
    dependencies=[Depends(require_permission("read", "tasks"))],
)
async def get_task_activity(task_id: UUID, scope: Scope) -> dict:
    """Chronological timeline of a task's changes and comments."""
    events = await ActivityService(scope).get_task_activity(task_id)
    return ok([e.to_dict() for e in events])


@router.get(
    "/{task_id}/comments",
    response_model=Envelope[list[TaskCommentResponse]],
    dependencies=[Depends(require_permission("read", "tasks"))],
)
async def list_task_comments(task_id: UUID, tasks: Tasks) -> dict:
    """List a task's comments, oldest first."""
    comments = await tasks.list_comments(task_id)
    return ok([TaskCommentResponse.model_validate(c) for c in comments])


@router.post(
    "/{task_id}/comments",
    response_model=Envelope[TaskCommentResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("read", "tasks"))],
)
async def create_task_comment(task_id: UUID, request: TaskCommentCreate, tasks: Tasks) -> dict:
    """Comment on a task. Anyone who can read the task may comment."""
    comment = await tasks.add_comment(task_id, request.body)
    return ok(TaskCommentResponse.model_validate(comment))
