# tests/conftest.py - Shared test fixtures
import os
import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

# Configure before anything imports taskhub settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./taskhub-test.db"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

from taskhub.core.security import create_access_token, hash_password
from taskhub.db.base import Base
from taskhub.db.session import create_session_factory, get_db_session, get_session_factory
from taskhub.main import app
from taskhub.models import Organization, User
from taskhub.models.organization import default_org_settings
from taskhub.services.tenant_scope import TenantScope


DEFAULT_PASSWORD = "Password123!"


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory):
    """HTTP test client bound to the per-test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_org(db_session, name: str = "Acme Corp") -> Organization:
    org = Organization(
        name=name,
        slug="-".join(name.lower().split()),
        settings=default_org_settings(),
    )
    db_session.add(org)
    await db_session.commit()
    await db_session.refresh(org)
    return org


async def create_user(
    db_session,
    org: Organization,
    role: str = "member",
    name: str | None = None,
    email: str | None = None,
) -> User:
    suffix = uuid.uuid4().hex[:8]
    user = User(
        organization_id=org.id,
        name=name or f"{role.title()} {suffix}",
        email=email or f"{role}-{suffix}@example.com",
        password_hash=hash_password(DEFAULT_PASSWORD),
        role=role,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def org(db_session):
    return await create_org(db_session)


@pytest_asyncio.fixture
async def other_org(db_session):
    return await create_org(db_session, "Globex Inc")


@pytest_asyncio.fixture
async def admin(db_session, org):
    return await create_user(db_session, org, "admin", name="Ada Admin")


@pytest_asyncio.fixture
async def manager(db_session, org):
    return await create_user(db_session, org, "manager", name="Max Manager")


@pytest_asyncio.fixture
async def member(db_session, org):
    return await create_user(db_session, org, "member", name="Mia Member")


@pytest_asyncio.fixture
async def outsider(db_session, other_org):
    """Admin of a different organization."""
    return await create_user(db_session, other_org, "admin", name="Olly Outsider")


@pytest.fixture
def scope(db_session, org):
    return TenantScope(db_session, org.id)


def auth_headers(user: User) -> dict:
    """Bearer headers for a user."""
    token = create_access_token(
        user_id=user.id,
        organization_id=user.organization_id,
        role=user.role,
        email=user.email,
    )
    return {"Authorization": f"Bearer {token}"}


def org_url(org_id, path: str = "") -> str:
    return f"/api/v1/orgs/{org_id}{path}"


async def create_task_via_api(client, user: User, **payload) -> dict:
    payload.setdefault("title", "Write quarterly report")
    resp = await client.post(
        org_url(user.organization_id, "/tasks"),
        json=payload,
        headers=auth_headers(user),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]
