"""Organization endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from taskhub.api.deps import Audit, ClientIP, OrgIdentity, Scope, require_permission
from taskhub.core.exceptions import NotFoundError
from taskhub.core.responses import Envelope, ok
from taskhub.models.organization import Organization

router = APIRouter()
logger = structlog.get_logger()


class OrganizationResponse(BaseModel):
    """Organization response model."""

    id: UUID
    name: str
    slug: str
    plan: str
    settings: dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


class OrganizationSettings(BaseModel):
    max_users: int | None = Field(None, ge=1)
    max_tasks: int | None = Field(None, ge=1)


class OrganizationUpdate(BaseModel):
    """Plan and settings changes. Name and slug are fixed at registration."""

    plan: str | None = Field(None, pattern="^(free|pro|enterprise)$")
    settings: OrganizationSettings | None = None


async def _load(scope: Scope) -> Organization:
    organization = await scope.db.get(Organization, scope.organization_id)
    if organization is None:
        raise NotFoundError("Organization not found")
    return organization


@router.get(
    "",
    response_model=Envelope[OrganizationResponse],
    dependencies=[Depends(require_permission("read", "organization"))],
)
async def get_organization(scope: Scope) -> dict:
    return ok(OrganizationResponse.model_validate(await _load(scope)))


@router.patch(
    "",
    response_model=Envelope[OrganizationResponse],
    dependencies=[Depends(require_permission("update", "organization"))],
)
async def update_organization(
    request: OrganizationUpdate,
    scope: Scope,
    identity: OrgIdentity,
    audit: Audit,
    ip_address: ClientIP,
) -> dict:
    """Change the plan or the user/task limits."""
    organization = await _load(scope)
    before = {"plan": organization.plan, "settings": dict(organization.settings)}

    if request.plan is not None:
        organization.plan = request.plan
    if request.settings is not None:
        # Reassign so the JSON column is flagged dirty
        organization.settings = {
            **organization.settings,
            **request.settings.model_dump(exclude_none=True),
        }
    await scope.db.commit()

    after = {"plan": organization.plan, "settings": dict(organization.settings)}
    logger.info("organization_updated", organization_id=str(organization.id))
    await audit.record(
        organization_id=identity.organization_id,
        user_id=identity.user_id,
        action="update",
        resource="organization",
        resource_id=organization.id,
        changes={"before": before, "after": after},
        ip_address=ip_address,
    )
    return ok(OrganizationResponse.model_validate(organization))
