"""Audit recorder.

Appends one immutable AuditLog row per create/update/delete. Entries are
written in their own session after the primary operation commits, so an
audit failure can neither roll back nor fail the operation it describes.
The reverse gap (primary committed, audit lost) is accepted.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.core.exceptions import SideEffectOutcome
from taskhub.models.activity import SYSTEM_ACTOR, AuditLog

logger = structlog.get_logger()


def to_json_safe(value: Any) -> Any:
    """Render UUIDs, dates and enums as strings, recursively."""
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


class AuditRecorder:
    """Best-effort writer of audit entries."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        organization_id: UUID,
        user_id: UUID | None,
        action: str,
        resource: str,
        resource_id: UUID | None = None,
        changes: dict | None = None,
        ip_address: str | None = None,
        actor: str = "user",
    ) -> SideEffectOutcome:
        """
        Append an audit entry. Never raises.

        Args:
            organization_id: Tenant the entry belongs to
            user_id: Acting user, None for system writes
            action: Free-form verb (create, update, delete, created_recurring, ...)
            resource: Resource name (task, task_comment, user, ...)
            resource_id: Affected row, if any
            changes: {before, after} for updates, field snapshot otherwise
            ip_address: Client address; "unknown" when not supplied
            actor: "user" or "system"

        Returns:
            Outcome of the write attempt
        """
        try:
            entry = AuditLog(
                organization_id=organization_id,
                user_id=user_id,
                actor=actor,
                action=action,
                resource=resource,
                resource_id=resource_id,
                changes=to_json_safe(changes) if changes is not None else None,
                ip_address=ip_address or "unknown",
            )
            async with self.session_factory() as session:
                session.add(entry)
                await session.commit()
        except Exception as e:
            logger.error(
                "audit_log_failed",
                organization_id=str(organization_id),
                action=action,
                resource=resource,
                resource_id=str(resource_id) if resource_id else None,
                error=str(e),
                error_type=type(e).__name__,
            )
            return SideEffectOutcome.failure("audit", e)

        logger.debug(
            "audit_log_recorded",
            audit_log_id=str(entry.id),
            action=action,
            resource=resource,
        )
        return SideEffectOutcome.ok("audit", entry.id)

    async def record_system(
        self,
        organization_id: UUID,
        action: str,
        resource: str,
        resource_id: UUID | None = None,
        changes: dict | None = None,
    ) -> SideEffectOutcome:
        """Record an entry attributed to the scheduler rather than a user."""
        return await self.record(
            organization_id=organization_id,
            user_id=None,
            action=action,
            resource=resource,
            resource_id=resource_id,
            changes=changes,
            ip_address=SYSTEM_ACTOR,
            actor=SYSTEM_ACTOR,
        )
