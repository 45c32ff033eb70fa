"""Audit log browsing."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from taskhub.api.deps import Scope, require_permission
from taskhub.api.v1.tasks import UserSummary
from taskhub.core.responses import Envelope, PageMeta, ok
from taskhub.models.activity import AuditLog

router = APIRouter()


class AuditLogResponse(BaseModel):
    """Audit entry as stored."""

    id: UUID
    user_id: UUID | None
    user: UserSummary | None = None
    actor: str
    action: str
    resource: str
    resource_id: UUID | None
    changes: dict[str, Any] | None
    ip_address: str
    timestamp: datetime

    class Config:
        from_attributes = True


@router.get(
    "",
    response_model=Envelope[list[AuditLogResponse]],
    dependencies=[Depends(require_permission("read", "auditLogs"))],
)
async def list_audit_logs(
    scope: Scope,
    action: str | None = Query(None, max_length=50),
    resource: str | None = Query(None, max_length=50),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
) -> dict:
    """Audit entries for the organization, newest first."""
    criteria = []
    if action:
        criteria.append(AuditLog.action == action)
    if resource:
        criteria.append(AuditLog.resource == resource)

    total = await scope.count(AuditLog, *criteria)
    result = await scope.db.execute(
        scope.select(AuditLog, *criteria)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return ok(
        [AuditLogResponse.model_validate(entry) for entry in result.scalars().all()],
        meta=PageMeta(page=page, limit=limit, total=total),
    )
