"""Notification API endpoints for the current user."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import update

from taskhub.api.deps import Audit, ClientIP, OrgIdentity, Scope, require_permission
from taskhub.api.v1.tasks import UserSummary
from taskhub.config import get_settings
from taskhub.core.exceptions import NotFoundError
from taskhub.core.responses import Envelope, PageMeta, ok
from taskhub.db.base import utcnow
from taskhub.models.activity import Notification
from taskhub.models.user import User

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


class TaskRef(BaseModel):
    """Task referenced by a notification."""

    id: UUID
    title: str
    status: str

    class Config:
        from_attributes = True


class NotificationResponse(BaseModel):
    """Notification response model."""

    id: UUID
    notification_type: str
    title: str
    message: str
    task_id: UUID | None
    task: TaskRef | None = None
    triggered_by_id: UUID | None
    triggered_by: UserSummary | None = None
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class PreferencesUpdate(BaseModel):
    """Notification preference changes; omitted channels are unchanged."""

    email: bool | None = None
    in_app: bool | None = None


@router.get(
    "",
    response_model=Envelope[list[NotificationResponse]],
    dependencies=[Depends(require_permission("read", "notifications"))],
)
async def list_notifications(
    scope: Scope,
    identity: OrgIdentity,
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
) -> dict:
    """List the caller's notifications, newest first."""
    criteria = [Notification.recipient_id == identity.user_id]
    if unread_only:
        criteria.append(Notification.is_read.is_(False))

    total = await scope.count(Notification, *criteria)
    result = await scope.db.execute(
        scope.select(Notification, *criteria)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return ok(
        [NotificationResponse.model_validate(n) for n in result.scalars().all()],
        meta=PageMeta(page=page, limit=limit, total=total),
    )


@router.get(
    "/unread-count",
    response_model=Envelope[dict[str, int]],
    dependencies=[Depends(require_permission("read", "notifications"))],
)
async def get_unread_count(scope: Scope, identity: OrgIdentity) -> dict:
    """Count of the caller's unread notifications."""
    count = await scope.count(
        Notification,
        Notification.recipient_id == identity.user_id,
        Notification.is_read.is_(False),
    )
    return ok({"count": count})


@router.put(
    "/mark-all-read",
    response_model=Envelope[dict[str, int]],
    dependencies=[Depends(require_permission("update", "notifications"))],
)
async def mark_all_read(
    scope: Scope,
    identity: OrgIdentity,
    audit: Audit,
    ip_address: ClientIP,
) -> dict:
    """Mark every unread notification of the caller as read."""
    result = await scope.db.execute(
        update(Notification)
        .where(
            Notification.organization_id == identity.organization_id,
            Notification.recipient_id == identity.user_id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True, read_at=utcnow())
    )
    await scope.db.commit()
    modified = result.rowcount or 0

    logger.info("notifications_marked_read", user_id=str(identity.user_id), count=modified)
    await audit.record(
        organization_id=identity.organization_id,
        user_id=identity.user_id,
        action="update",
        resource="notification",
        changes={"marked_all_read": True, "count": modified},
        ip_address=ip_address,
    )
    return ok({"modified_count": modified})


@router.get(
    "/preferences",
    response_model=Envelope[dict[str, bool]],
    dependencies=[Depends(require_permission("read", "notifications"))],
)
async def get_preferences(scope: Scope, identity: OrgIdentity) -> dict:
    """The caller's notification channel preferences."""
    user = await scope.get_or_404(User, identity.user_id, "User")
    return ok(user.notification_prefs)


@router.put(
    "/preferences",
    response_model=Envelope[dict[str, bool]],
    dependencies=[Depends(require_permission("update", "notifications"))],
)
async def update_preferences(
    request: PreferencesUpdate,
    scope: Scope,
    identity: OrgIdentity,
    audit: Audit,
    ip_address: ClientIP,
) -> dict:
    """Turn notification channels on or off."""
    user = await scope.get_or_404(User, identity.user_id, "User")
    before = user.notification_prefs

    if request.email is not None:
        user.notify_email = request.email
    if request.in_app is not None:
        user.notify_in_app = request.in_app
    await scope.db.commit()

    await audit.record(
        organization_id=identity.organization_id,
        user_id=identity.user_id,
        action="update",
        resource="notification_preferences",
        resource_id=user.id,
        changes={"before": before, "after": user.notification_prefs},
        ip_address=ip_address,
    )
    return ok(user.notification_prefs)


@router.put(
    "/{notification_id}/read",
    response_model=Envelope[NotificationResponse],
    dependencies=[Depends(require_permission("update", "notifications"))],
)
async def mark_read(
    notification_id: UUID,
    scope: Scope,
    identity: OrgIdentity,
    audit: Audit,
    ip_address: ClientIP,
) -> dict:
    """Mark one of the caller's notifications as read."""
    notification = await scope.get_or_404(Notification, notification_id, "Notification")
    # Other users' notifications are indistinguishable from missing ones
    if notification.recipient_id != identity.user_id:
        logger.info("notification_not_owned", notification_id=str(notification_id))
        raise NotFoundError("Notification not found")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        await scope.db.commit()

    await audit.record(
        organization_id=identity.organization_id,
        user_id=identity.user_id,
        action="update",
        resource="notification",
        resource_id=notification.id,
        changes={"read": True},
        ip_address=ip_address,
    )
    return ok(NotificationResponse.model_validate(notification))
