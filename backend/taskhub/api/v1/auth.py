"""Registration, login and current-user endpoints."""

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.deps import Audit, ClientIP, CurrentIdentity
from taskhub.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from taskhub.core.responses import Envelope, ok
from taskhub.core.security import create_access_token, hash_password, verify_password
from taskhub.db.session import get_db_session
from taskhub.models.organization import Organization, default_org_settings, slugify_org_name
from taskhub.models.user import User

router = APIRouter()
logger = structlog.get_logger()


class RegisterRequest(BaseModel):
    """Register a user, creating the organization on first use."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    org_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseModel):
    """Log in to an organization identified by slug."""

    email: EmailStr
    password: str = Field(..., min_length=1)
    org_slug: str = Field(..., min_length=1)


class AuthUser(BaseModel):
    """User summary returned with a token."""

    id: UUID
    name: str
    email: str
    role: str
    organization_id: UUID

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Token plus the authenticated user."""

    token: str
    user: AuthUser


def _issue(user: User) -> AuthResponse:
    token = create_access_token(
        user_id=user.id,
        organization_id=user.organization_id,
        role=user.role,
        email=user.email,
    )
    return AuthResponse(token=token, user=AuthUser.model_validate(user))


@router.post(
    "/register",
    response_model=Envelope[AuthResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    audit: Audit,
    ip_address: ClientIP,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Register a user. The first user of a new organization becomes its admin."""
    slug = slugify_org_name(request.org_name)
    if not slug:
        raise ValidationError("Organization name is required")

    result = await db.execute(select(Organization).where(Organization.slug == slug))
    org = result.scalar_one_or_none()
    if org is None:
        org = Organization(name=request.org_name.strip(), slug=slug, settings=default_org_settings())
        db.add(org)
        await db.flush()
        logger.info("organization_created", organization_id=str(org.id), slug=slug)

    email = request.email.lower()
    existing = await db.execute(
        select(User.id).where(User.organization_id == org.id, User.email == email)
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("User already exists in this organization")

    user_count = await db.execute(
        select(func.count()).select_from(User).where(User.organization_id == org.id)
    )
    is_first_user = user_count.scalar_one() == 0

    user = User(
        organization_id=org.id,
        name=request.name.strip(),
        email=email,
        password_hash=hash_password(request.password),
        role="admin" if is_first_user else "member",
    )
    db.add(user)
    await db.commit()

    logger.info(
        "user_registered",
        user_id=str(user.id),
        organization_id=str(org.id),
        role=user.role,
    )

    await audit.record(
        organization_id=org.id,
        user_id=user.id,
        action="create",
        resource="user",
        resource_id=user.id,
        changes={"name": user.name, "email": user.email, "role": user.role},
        ip_address=ip_address,
    )

    return ok(_issue(user))


@router.post("/login", response_model=Envelope[AuthResponse])
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Exchange credentials for a bearer token."""
    result = await db.execute(select(Organization).where(Organization.slug == request.org_slug))
    org = result.scalar_one_or_none()
    if org is None:
        raise NotFoundError("Organization not found")

    result = await db.execute(
        select(User).where(User.organization_id == org.id, User.email == request.email.lower())
    )
    user = result.scalar_one_or_none()
    if user is None or not verify_password(request.password, user.password_hash):
        logger.info("login_failed", organization_id=str(org.id))
        raise AuthenticationError("Invalid credentials")

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()

    logger.info("user_logged_in", user_id=str(user.id))
    return ok(_issue(user))


@router.get("/me", response_model=Envelope[AuthUser])
async def get_me(
    identity: CurrentIdentity,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """The authenticated user."""
    result = await db.execute(
        select(User).where(
            User.id == identity.user_id,
            User.organization_id == identity.organization_id,
        )
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("User no longer exists")
    return ok(AuthUser.model_validate(user))
