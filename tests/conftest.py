"""
Global test fixtures and configuration.

This module provides base fixtures for all tests:
- In-memory SQLite database per test (aiosqlite)
- Redis client (in-memory fake)
- HTTP client with dependency overrides
- Base data fixtures (user ids, auth headers, a team with members)
"""

import os
import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from fakeredis import FakeAsyncRedis, FakeServer

# Set test environment variables BEFORE importing the app
os.environ["MODE"] = "test"
os.environ["POSTGRES_INTERNAL_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CELERY_BROKER_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_RESULT_BACKEND"] = "redis://localhost:6379/1"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SENTRY_DSN"] = ""

from simplr.main import app
from simplr.api.dependencies import get_db, get_redis, get_redis_factory
from simplr.db.base import Base
from tests.helpers import make_auth_headers

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ==================== Database ====================

@pytest.fixture(scope="function")
async def test_engine():
    """
    Fresh in-memory database per test.

    StaticPool keeps the single connection alive so every session sees
    the same database.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        echo=False  # Set to True for SQL debugging
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Session shared by the test and the app under test.

    Services commit, so isolation comes from the per-test database.
    """
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


# ==================== Redis ====================

@pytest.fixture(scope="function")
def redis_server() -> FakeServer:
    return FakeServer()


@pytest.fixture(scope="function")
async def redis_client(redis_server: FakeServer) -> AsyncGenerator[FakeAsyncRedis, None]:
    """
    Create fake Redis client (in-memory) for each test.

    Clients built on the same redis_server share channels and keys.
    """
    redis = FakeAsyncRedis(server=redis_server)
    yield redis
    await redis.flushall()
    await redis.aclose()


# ==================== FastAPI Client ====================

@pytest.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    redis_server: FakeServer,
    redis_client: FakeAsyncRedis
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create HTTP client for testing FastAPI endpoints.

    Overrides get_db and get_redis dependencies to use test fixtures.
    """

    async def override_get_db():
        yield db_session

    async def override_get_redis():
        yield redis_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_redis_factory] = lambda: (lambda: FakeAsyncRedis(server=redis_server))

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Base Data Fixtures ====================

@pytest.fixture
def user_id() -> str:
    return "user-owner"


@pytest.fixture
def auth_headers(user_id):
    """
    Generate authentication headers for the default user.
    """
    return make_auth_headers(user_id)


@pytest.fixture
def guest_id() -> str:
    return "guest_1700000000000"


@pytest.fixture
def guest_headers(guest_id):
    return make_auth_headers(guest_id)


@pytest.fixture
async def team(db_session: AsyncSession, user_id):
    """
    Create a team owned by user_id with an admin and a member.

    Members: user-owner (owner), user-admin (admin), user-member (member)
    """
    from tests.factories import TeamFactory, TeamMemberFactory

    team = await TeamFactory.create_async(db_session, created_by=user_id, name="Platform Team")
    await TeamMemberFactory.create_async(db_session, team_id=team.id, user_id=user_id, role="owner")
    await TeamMemberFactory.create_async(db_session, team_id=team.id, user_id="user-admin", role="admin")
    await TeamMemberFactory.create_async(db_session, team_id=team.id, user_id="user-member", role="member")
    await db_session.commit()
    await db_session.refresh(team)
    return team


@pytest.fixture
async def organization(db_session: AsyncSession, user_id):
    """
    Create an organization owned by user_id with an admin and a member.

    Members: user-owner (owner), user-admin (admin), user-member (member)
    """
    from tests.factories import OrganizationFactory, OrganizationMemberFactory

    organization = await OrganizationFactory.create_async(db_session, owner_id=user_id, name="Acme Corp")
    for member_id, role in ((user_id, "owner"), ("user-admin", "admin"), ("user-member", "member")):
        await OrganizationMemberFactory.create_async(
            db_session, organization_id=organization.id, user_id=member_id, role=role
        )
    await db_session.commit()
    await db_session.refresh(organization)
    return organization


@pytest.fixture
def admin_headers():
    return make_auth_headers("user-admin")


@pytest.fixture
def member_headers():
    return make_auth_headers("user-member")


@pytest.fixture
def outsider_headers():
    return make_auth_headers("user-outsider")
