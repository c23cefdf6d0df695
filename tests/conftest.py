"""
Shared test fixtures for the Facility Ops test suite.

Async throughout (aiosqlite + AsyncSession); every test gets a fresh
in-memory database.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["AUTH_MODE"] = "fixed"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"

from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from facility_ops.api.v1.deps import get_db
from facility_ops.db.base import Base
from facility_ops.main import app
from facility_ops.models.supervisor import Supervisor
from facility_ops.models.user import User


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database with all tables created."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    await test_engine.dispose()


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def find_users(session_factory):
    """Look up users in a short-lived session so results are never stale."""

    async def _find(**filters) -> list[User]:
        async with session_factory() as session:
            query = select(User)
            for column, value in filters.items():
                query = query.where(getattr(User, column) == value)
            result = await session.execute(query)
            return list(result.scalars().all())

    return _find


@pytest.fixture
def find_supervisor(session_factory):
    async def _find(supervisor_id: str) -> Supervisor | None:
        async with session_factory() as session:
            return await session.get(Supervisor, supervisor_id)

    return _find


JANE = {
    "name": "Jane Doe",
    "email": "jane@x.com",
    "phone": "555",
    "password": "secret123",
}


@pytest.fixture
def jane() -> dict:
    return dict(JANE)
