"""Organization user endpoints."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from taskhub.api.deps import Audit, ClientIP, OrgIdentity, Scope, require_permission
from taskhub.core.responses import Envelope, ok
from taskhub.models.user import User

router = APIRouter()
logger = structlog.get_logger()


class UserResponse(BaseModel):
    """User information without credentials."""

    id: UUID
    organization_id: UUID
    name: str
    email: str
    role: str
    notification_prefs: dict[str, bool]
    last_login_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class RoleUpdate(BaseModel):
    """Change a user's role."""

    role: str = Field(..., pattern="^(admin|manager|member)$")


@router.get(
    "",
    response_model=Envelope[list[UserResponse]],
    dependencies=[Depends(require_permission("read", "users"))],
)
async def list_users(scope: Scope) -> dict:
    """List the organization's users."""
    result = await scope.db.execute(scope.select(User).order_by(User.name, User.email))
    return ok([UserResponse.model_validate(u) for u in result.scalars().all()])


@router.put(
    "/{user_id}/role",
    response_model=Envelope[UserResponse],
    dependencies=[Depends(require_permission("changeRole", "users"))],
)
async def change_role(
    user_id: UUID,
    request: RoleUpdate,
    scope: Scope,
    identity: OrgIdentity,
    audit: Audit,
    ip_address: ClientIP,
) -> dict:
    """Change a user's role within the organization."""
    user = await scope.get_or_404(User, user_id, "User")
    old_role = user.role
    user.role = request.role
    await scope.db.commit()

    logger.info(
        "user_role_changed",
        target_user_id=str(user.id),
        old_role=old_role,
        new_role=user.role,
    )
    await audit.record(
        organization_id=identity.organization_id,
        user_id=identity.user_id,
        action="update",
        resource="user",
        resource_id=user.id,
        changes={"before": {"role": old_role}, "after": {"role": user.role}},
        ip_address=ip_address,
    )
    return ok(UserResponse.model_validate(user))
