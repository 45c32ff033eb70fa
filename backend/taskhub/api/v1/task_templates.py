"""Task template endpoints."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from taskhub.api.deps import Audit, ClientIP, OrgIdentity, Scope, Tasks, require_permission
from taskhub.api.v1.tasks import PRIORITY_PATTERN, TaskResponse, UserSummary
from taskhub.core.exceptions import ConflictError, ValidationError
from taskhub.core.responses import Envelope, ok
from taskhub.models.task import TaskTemplate
from taskhub.models.user import User

router = APIRouter()
logger = structlog.get_logger()


class TemplateCreate(BaseModel):
    """Create a task template."""

    name: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(None, max_length=20000)
    priority: str = Field(default="medium", pattern=PRIORITY_PATTERN)
    assignee_id: UUID | None = None


class TemplateUpdate(BaseModel):
    """Update a task template."""

    name: str | None = Field(None, min_length=1, max_length=255)
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, max_length=20000)
    priority: str | None = Field(None, pattern=PRIORITY_PATTERN)
    assignee_id: UUID | None = None


class TemplateResponse(BaseModel):
    """Task template response."""

    id: UUID
    organization_id: UUID
    name: str
    title: str
    description: str | None
    priority: str
    assignee_id: UUID | None
    assignee: UserSummary | None = None
    created_by_id: UUID | None
    created_by: UserSummary | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def _template_fields(template: TaskTemplate) -> dict:
    return {
        "name": template.name,
        "title": template.title,
        "description": template.description,
        "priority": template.priority,
        "assigneeId": template.assignee_id,
    }


async def _ensure_unique_name(scope: Scope, name: str, exclude_id: UUID | None = None) -> None:
    criteria = [TaskTemplate.name == name]
    if exclude_id is not None:
        criteria.append(TaskTemplate.id != exclude_id)
    if await scope.count(TaskTemplate, *criteria):
        raise ConflictError("A template with that name already exists")


async def _ensure_assignee(scope: Scope, assignee_id: UUID | None) -> None:
    if assignee_id is not None and not await scope.count(User, User.id == assignee_id):
        raise ValidationError("Assignee must be a member of the organization")


@router.get(
    "",
    response_model=Envelope[list[TemplateResponse]],
    dependencies=[Depends(require_permission("read", "task_template"))],
)
async def list_templates(scope: Scope) -> dict:
    """List the organization's templates by name."""
    result = await scope.db.execute(scope.select(TaskTemplate).order_by(TaskTemplate.name))
    return ok([TemplateResponse.model_validate(t) for t in result.scalars().all()])


@router.post(
    "",
    response_model=Envelope[TemplateResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("create", "task_template"))],
)
async def create_template(
    request: TemplateCreate,
    scope: Scope,
    identity: OrgIdentity,
    audit: Audit,
    ip_address: ClientIP,
) -> dict:
    """Create a template. Names are unique within an organization."""
    await _ensure_unique_name(scope, request.name)
    await _ensure_assignee(scope, request.assignee_id)

    template = scope.add(
        TaskTemplate(
            name=request.name,
            title=request.title,
            description=request.description,
            priority=request.priority,
            assignee_id=request.assignee_id,
            created_by_id=identity.user_id,
        )
    )
    await scope.db.commit()
    await scope.db.refresh(template, attribute_names=["assignee", "created_by"])

    logger.info("task_template_created", template_id=str(template.id))
    await audit.record(
        organization_id=identity.organization_id,
        user_id=identity.user_id,
        action="create",
        resource="task_template",
        resource_id=template.id,
        changes={"name": template.name, "title": template.title},
        ip_address=ip_address,
    )
    return ok(TemplateResponse.model_validate(template))


@router.get(
    "/{template_id}",
    response_model=Envelope[TemplateResponse],
    dependencies=[Depends(require_permission("read", "task_template"))],
)
async def get_template(template_id: UUID, scope: Scope) -> dict:
    template = await scope.get_or_404(TaskTemplate, template_id, "Template")
    return ok(TemplateResponse.model_validate(template))


@router.put(
    "/{template_id}",
    response_model=Envelope[TemplateResponse],
    dependencies=[Depends(require_permission("update", "task_template"))],
)
async def update_template(
    template_id: UUID,
    request: TemplateUpdate,
    scope: Scope,
    identity: OrgIdentity,
    audit: Audit,
    ip_address: ClientIP,
) -> dict:
    """Update a template's defaults."""
    template = await scope.get_or_404(TaskTemplate, template_id, "Template")
    before = _template_fields(template)

    changes = request.model_dump(exclude_unset=True)
    if changes.get("name"):
        await _ensure_unique_name(scope, changes["name"], exclude_id=template.id)
    if "assignee_id" in changes:
        await _ensure_assignee(scope, changes["assignee_id"])

    for field, value in changes.items():
        # name, title and priority cannot be cleared
        if value is None and field in ("name", "title", "priority"):
            continue
        setattr(template, field, value)

    await scope.db.commit()
    await scope.db.refresh(template, attribute_names=["assignee", "created_by"])

    logger.info("task_template_updated", template_id=str(template.id))
    await audit.record(
        organization_id=identity.organization_id,
        user_id=identity.user_id,
        action="update",
        resource="task_template",
        resource_id=template.id,
        changes={"before": before, "after": _template_fields(template)},
        ip_address=ip_address,
    )
    return ok(TemplateResponse.model_validate(template))


@router.delete(
    "/{template_id}",
    response_model=Envelope[dict],
    dependencies=[Depends(require_permission("delete", "task_template"))],
)
async def delete_template(
    template_id: UUID,
    scope: Scope,
    identity: OrgIdentity,
    audit: Audit,
    ip_address: ClientIP,
) -> dict:
    """Delete a template. Tasks stamped from it are kept."""
    template = await scope.get_or_404(TaskTemplate, template_id, "Template")
    name = template.name

    await scope.db.delete(template)
    await scope.db.commit()

    logger.info("task_template_deleted", template_id=str(template_id))
    await audit.record(
        organization_id=identity.organization_id,
        user_id=identity.user_id,
        action="delete",
        resource="task_template",
        resource_id=template_id,
        changes={"name": name},
        ip_address=ip_address,
    )
    return ok({"message": "Template deleted"})


@router.post(
    "/{template_id}/create-task",
    response_model=Envelope[TaskResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("create", "task_template"))],
)
async def create_task_from_template(template_id: UUID, tasks: Tasks) -> dict:
    """Stamp a new open task from a template."""
    task = await tasks.create_from_template(template_id)
    return ok(TaskResponse.model_validate(task))
