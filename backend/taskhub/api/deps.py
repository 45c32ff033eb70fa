"""Shared request dependencies: identity, tenant checks, permissions, services."""

from typing import Annotated

import structlog
from fastapi import Depends, Path, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.core.exceptions import AuthenticationError, AuthorizationError
from taskhub.core.security import Identity, decode_access_token
from taskhub.db.session import get_db_session, get_session_factory
from taskhub.middleware.logging import client_ip
from taskhub.services.audit import AuditRecorder
from taskhub.services.notification import NotificationService
from taskhub.services.permissions import denial_message, is_allowed
from taskhub.services.task import TaskService
from taskhub.services.tenant_scope import TenantScope, enforce_path_org

logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Identity:
    """Identity from the bearer token; 401 when missing, malformed or expired."""
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    identity = decode_access_token(credentials.credentials)
    structlog.contextvars.bind_contextvars(
        user_id=str(identity.user_id),
        organization_id=str(identity.organization_id),
    )
    return identity


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]


async def get_org_identity(
    identity: CurrentIdentity,
    org_id: Annotated[str, Path(description="Organization id")],
) -> Identity:
    """Identity for org-scoped routes; 403 when the URL names another org."""
    enforce_path_org(org_id, identity.organization_id)
    return identity


OrgIdentity = Annotated[Identity, Depends(get_org_identity)]


def require_permission(action: str, resource: str):
    """Dependency factory rejecting roles that lack ``action`` on ``resource``."""

    async def _check(identity: OrgIdentity) -> Identity:
        if not is_allowed(identity.role, action, resource):
            logger.info(
                "permission_denied",
                role=identity.role,
                action=action,
                resource=resource,
            )
            raise AuthorizationError(denial_message(identity.role, action, resource))
        return identity

    return _check


async def get_tenant_scope(
    identity: OrgIdentity,
    db: AsyncSession = Depends(get_db_session),
) -> TenantScope:
    return TenantScope(db, identity.organization_id)


Scope = Annotated[TenantScope, Depends(get_tenant_scope)]


def get_audit_recorder(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AuditRecorder:
    return AuditRecorder(session_factory)


def get_notification_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> NotificationService:
    return NotificationService(session_factory)


Audit = Annotated[AuditRecorder, Depends(get_audit_recorder)]
Notifications = Annotated[NotificationService, Depends(get_notification_service)]


def get_client_ip(request: Request) -> str:
    return client_ip(request)


ClientIP = Annotated[str, Depends(get_client_ip)]


def get_task_service(
    scope: Scope,
    identity: OrgIdentity,
    audit: Audit,
    notifications: Notifications,
    ip_address: ClientIP,
) -> TaskService:
    return TaskService(
        scope=scope,
        audit=audit,
        notifications=notifications,
        user_id=identity.user_id,
        ip_address=ip_address,
    )


Tasks = Annotated[TaskService, Depends(get_task_service)]
