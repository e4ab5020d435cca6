"""Root test fixtures shared across all test types.

This conftest contains fixtures that can be used by both unit and integration tests.
HTTP and migrated-database fixtures are in tests/integration/conftest.py.
"""

import os

# Set APP_ENV to testing before any app imports to disable rate limiting
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
# Cheap Argon2 parameters keep the suite fast
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.pop("RESEND_API_KEY", None)

# ruff: noqa: E402 - Imports must be after env var setup
from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from src.tally import models  # noqa: F401 - registers tables on the metadata
from src.tally.core.config import get_settings
from src.tally.core.security import get_password_hasher, get_token_codec
from src.tally.core.shutdown import request_tracker
from src.tally.models import Organization, User
from tests.factories import OrganizationFactory, UserFactory

# Clear settings cache to ensure test environment variables are picked up
get_settings.cache_clear()
get_password_hasher.cache_clear()
get_token_codec.cache_clear()


@pytest.fixture(autouse=True)
def _reset_request_tracker() -> None:
    """Lifespan shutdown flips the tracker into draining mode; undo it between tests."""
    request_tracker.reset()
    yield
    request_tracker.reset()


# --- Database fixtures (in-memory SQLite, schema from metadata) ---


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine]:
    """In-memory database shared by every session of one test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield test_engine
    await test_engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Provide an async session for database operations.

    The session only closes on exit; it does NOT auto-commit.
    """
    async with AsyncSession(engine, expire_on_commit=False, autoflush=False) as session:
        yield session


@pytest.fixture
async def organization(db_session: AsyncSession) -> Organization:
    org = OrganizationFactory.build()
    db_session.add(org)
    await db_session.commit()
    return org


@pytest.fixture
async def user(db_session: AsyncSession, organization: Organization) -> User:
    """An active teacher in ``organization`` whose password is DEFAULT_TEST_PASSWORD."""
    member = UserFactory.build(organization_id=organization.id)
    db_session.add(member)
    await db_session.commit()
    return member
