"""Tenant scoping for org-owned rows.

Every read and write of an org-scoped model goes through ``TenantScope`` so
the caller's organization id is always part of the filter and overrides any
client-supplied value. Rows belonging to another organization behave as if
they do not exist.
"""

from typing import Any, TypeVar
from uuid import UUID

import structlog
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.exceptions import AuthorizationError, NotFoundError

logger = structlog.get_logger()

ModelT = TypeVar("ModelT")


def enforce_path_org(path_org_id: UUID | str, identity_org_id: UUID) -> None:
    """Reject requests whose URL organization differs from the token's."""
    if str(path_org_id) != str(identity_org_id):
        logger.warning(
            "cross_tenant_request_rejected",
            path_org_id=str(path_org_id),
            identity_org_id=str(identity_org_id),
        )
        raise AuthorizationError("Forbidden")


class TenantScope:
    """Organization-filtered access to the database for one request."""

    def __init__(self, db: AsyncSession, organization_id: UUID):
        self.db = db
        self.organization_id = organization_id

    def select(self, model: type[ModelT], *criteria: Any) -> Select:
        """``SELECT model`` restricted to this organization."""
        return select(model).where(model.organization_id == self.organization_id, *criteria)

    async def count(self, model: type, *criteria: Any) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(model)
            .where(model.organization_id == self.organization_id, *criteria)
        )
        return result.scalar_one()

    async def get(self, model: type[ModelT], entity_id: UUID) -> ModelT | None:
        result = await self.db.execute(self.select(model, model.id == entity_id))
        return result.scalar_one_or_none()

    async def get_or_404(self, model: type[ModelT], entity_id: UUID, label: str) -> ModelT:
        entity = await self.get(model, entity_id)
        if entity is None:
            raise NotFoundError(f"{label} not found")
        return entity

    def add(self, entity: ModelT) -> ModelT:
        """Stage a new row, stamping it with this organization."""
        entity.organization_id = self.organization_id
        self.db.add(entity)
        return entity
