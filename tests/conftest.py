"""
Pytest fixtures for Showcase Guard tests.

Uses a temp-file SQLite database so the app, the fixtures and the
idempotency guard (which opens its own sessions) all share one DB.
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio

_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-32-chars"
os.environ["ENVIRONMENT"] = "test"

from showcase.config import get_settings  # noqa: E402

get_settings.cache_clear()

from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from showcase.database import async_session_maker, engine  # noqa: E402
from showcase.kernel.identity import JWTManager  # noqa: E402
from showcase.kernel.models import ActorType, Base, Creator, Project  # noqa: E402
from showcase.kernel.safety import get_auth_backoff, get_rate_limiter  # noqa: E402


def pytest_sessionfinish(session, exitstatus):
    """Clean up temp DB file after test run."""
    if os.path.exists(TEST_DB_PATH):
        os.unlink(TEST_DB_PATH)


@pytest_asyncio.fixture
async def db_engine():
    """Fresh schema per test on the shared temp-file database."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine


@pytest_asyncio.fixture
async def session_maker(db_engine):
    return async_session_maker


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """The process-wide limiter and auth backoff must not leak state between tests."""
    get_rate_limiter().store.reset()
    get_auth_backoff().reset()
    yield
    get_rate_limiter().store.reset()
    get_auth_backoff().reset()


async def _make_creator(session: AsyncSession, email: str, name: str, is_active: bool = True) -> Creator:
    creator = Creator(id=uuid.uuid4(), email=email, name=name, is_active=is_active)
    session.add(creator)
    await session.commit()
    return creator


@pytest_asyncio.fixture
async def owner(db_session: AsyncSession) -> Creator:
    """Primary creator of test_project."""
    return await _make_creator(db_session, "owner@example.com", "Olivia Owner")


@pytest_asyncio.fixture
async def invitee(db_session: AsyncSession) -> Creator:
    return await _make_creator(db_session, "invitee@example.com", "Ivan Invitee")


@pytest_asyncio.fixture
async def outsider(db_session: AsyncSession) -> Creator:
    return await _make_creator(db_session, "outsider@example.com", "Oscar Outsider")


@pytest_asyncio.fixture
async def inactive_creator(db_session: AsyncSession) -> Creator:
    return await _make_creator(db_session, "inactive@example.com", "Inez Inactive", is_active=False)


@pytest_asyncio.fixture
async def test_project(db_session: AsyncSession, owner: Creator) -> Project:
    project = Project(
        id=uuid.uuid4(),
        title="Solar Kiln",
        description="A test project",
        creator_id=owner.id,
    )
    db_session.add(project)
    await db_session.commit()
    return project


@pytest.fixture
def jwt_manager() -> JWTManager:
    """JWT manager sharing the app's signing key."""
    return JWTManager(access_token_expire_minutes=30)


@pytest.fixture
def creator_headers(jwt_manager: JWTManager):
    """Build Authorization headers for a creator."""

    def _headers(creator: Creator) -> dict:
        token, _, _ = jwt_manager.create_access_token(
            subject_id=creator.id,
            email=creator.email,
            kind=ActorType.CREATOR,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(jwt_manager: JWTManager) -> dict:
    token, _, _ = jwt_manager.create_access_token(
        subject_id=uuid.uuid4(),
        email="admin@example.com",
        kind=ActorType.ADMIN,
    )
    return {"Authorization": f"Bearer {token}"}
