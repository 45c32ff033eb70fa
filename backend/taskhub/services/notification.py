"""Notification service for creating in-app notifications."""

from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.core.exceptions import SideEffectOutcome
from taskhub.models.activity import NOTIFICATION_TYPES, Notification
from taskhub.models.user import User

logger = structlog.get_logger()


class NotificationService:
    """Best-effort dispatcher of in-app notifications.

    Runs in its own session after the triggering operation has committed;
    failures are logged and returned, never raised.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def notify(
        self,
        organization_id: UUID,
        recipient_id: UUID | None,
        notification_type: str,
        title: str,
        message: str,
        task_id: UUID | None,
        triggered_by: UUID,
    ) -> SideEffectOutcome:
        """
        Create a notification unless the recipient triggered it themselves.

        Args:
            organization_id: Organization context
            recipient_id: The recipient user's ID
            notification_type: 'task_assigned' or 'task_status_changed'
            title: Notification title
            message: Notification body
            task_id: Related task, if any
            triggered_by: User whose action caused the notification

        Returns:
            Outcome of the attempt; skipped for self-notifications
        """
        if recipient_id is None:
            return SideEffectOutcome.skip("notification", "no recipient")

        # Don't notify users about their own actions
        if str(recipient_id) == str(triggered_by):
            logger.debug(
                "skipping_self_notification",
                user_id=str(recipient_id),
                notification_type=notification_type,
            )
            return SideEffectOutcome.skip("notification", "self notification")

        try:
            if notification_type not in NOTIFICATION_TYPES:
                raise ValueError(f"Unknown notification type '{notification_type}'")

            async with self.session_factory() as session:
                result = await session.execute(
                    select(User.id).where(
                        User.id == recipient_id,
                        User.organization_id == organization_id,
                    )
                )
                if result.scalar_one_or_none() is None:
                    raise LookupError("Recipient not found in organization")

                notification = Notification(
                    organization_id=organization_id,
                    recipient_id=recipient_id,
                    notification_type=notification_type,
                    title=title,
                    message=message,
                    task_id=task_id,
                    triggered_by_id=triggered_by,
                    is_read=False,
                )
                session.add(notification)
                await session.commit()
        except Exception as e:
            logger.error(
                "notification_failed",
                user_id=str(recipient_id),
                notification_type=notification_type,
                error=str(e),
                error_type=type(e).__name__,
            )
            return SideEffectOutcome.failure("notification", e)

        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            user_id=str(recipient_id),
            notification_type=notification_type,
        )
        return SideEffectOutcome.ok("notification", notification.id)
