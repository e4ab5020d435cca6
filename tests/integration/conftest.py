"""Integration test fixtures for the HTTP API.

The schema comes from the Alembic migrations, applied to a throwaway SQLite
file per test. Every request gets its own session on that database.
"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from src.tally.api.dependencies import get_db_session
from src.tally.core.db import run_migrations_sync
from src.tally.core.health import reset_health_cache
from src.tally.main import create_app
from src.tally.models import Organization, User, UserRole
from tests.factories import DEFAULT_TEST_PASSWORD
from tests.helpers import create_member, create_organization_with_owner

# Secure cookies are only sent back over https
BASE_URL = "https://test"


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Migrated database engine (overrides the metadata-built root fixture)."""
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'tally.db'}"
    await asyncio.to_thread(run_migrations_sync, database_url)

    test_engine = create_async_engine(database_url, poolclass=NullPool)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
async def client(engine: AsyncEngine) -> AsyncGenerator[AsyncClient]:
    reset_health_cache()
    app = create_app()

    async def _session_override() -> AsyncGenerator[AsyncSession]:
        async with AsyncSession(engine, expire_on_commit=False, autoflush=False) as session:
            yield session

    app.dependency_overrides[get_db_session] = _session_override
    async with AsyncClient(transport=ASGITransport(app=app), base_url=BASE_URL) as client:
        yield client


@pytest.fixture
async def school(db_session: AsyncSession) -> tuple[Organization, User]:
    """An organization with its owner."""
    return await create_organization_with_owner(db_session, name="Hillside Primary")


@pytest.fixture
async def teacher(db_session: AsyncSession, school: tuple[Organization, User]) -> dict:
    member = await create_member(db_session, school[0], role=UserRole.TEACHER)
    return {"id": str(member.id), "email": member.email, "password": DEFAULT_TEST_PASSWORD}


@pytest.fixture
async def admin(db_session: AsyncSession, school: tuple[Organization, User]) -> dict:
    member = await create_member(db_session, school[0], role=UserRole.ADMIN)
    return {"id": str(member.id), "email": member.email, "password": DEFAULT_TEST_PASSWORD}
