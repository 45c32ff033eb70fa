"""Organization (tenant) model."""

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskhub.db.base import BaseModel, JSONType

if TYPE_CHECKING:
    from taskhub.models.user import User


PLANS = ("free", "pro", "enterprise")


def default_org_settings() -> dict:
    return {"max_users": 10, "max_tasks": 100}


def slugify_org_name(name: str) -> str:
    """Lowercase the name and collapse whitespace runs into hyphens."""
    return "-".join(name.strip().lower().split())


class Organization(BaseModel):
    """Organization model - the tenant boundary for every other row."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    plan: Mapped[str] = mapped_column(String(20), nullable=False, default="free")

    # Organization settings stored as JSON
    settings: Mapped[dict] = mapped_column(
        JSONType, nullable=False, default=default_org_settings
    )

    # Relationships
    users: Mapped[list["User"]] = relationship(
        "User", back_populates="organization", lazy="noload"
    )

    def __repr__(self) -> str:
        try:
            return f"<Organization {self.slug}>"
        except Exception:
            return f"<Organization id={self.id}>"
