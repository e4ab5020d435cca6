"""Tests for rolling-window lockout over the login attempt log."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from src.tally.models import LoginAttempt
from src.tally.repositories import LoginAttemptRepository
from src.tally.services import LockoutGuard
from tests.factories import LoginAttemptFactory, utc_now

pytestmark = [pytest.mark.unit, pytest.mark.asyncio]

IDENTIFIER = "teacher@example.com"


@pytest.fixture
def guard(db_session: AsyncSession) -> LockoutGuard:
    return LockoutGuard(
        LoginAttemptRepository(db_session),
        db_session,
        max_attempts=5,
        window=timedelta(minutes=15),
    )


async def add_attempts(session: AsyncSession, *minutes_ago: float, succeeded: bool = False):
    now = utc_now()
    for minutes in minutes_ago:
        session.add(
            LoginAttemptFactory.build(
                identifier=IDENTIFIER,
                succeeded=succeeded,
                created_at=now - timedelta(minutes=minutes),
            )
        )
    await session.commit()


class TestStatus:
    async def test_no_attempts_is_unlocked(self, guard: LockoutGuard):
        status = await guard.status(IDENTIFIER)
        assert status.locked is False
        assert status.failures == 0
        assert status.retry_after is None

    async def test_below_threshold_is_unlocked(self, guard: LockoutGuard, db_session: AsyncSession):
        await add_attempts(db_session, 4, 3, 2, 1)
        status = await guard.status(IDENTIFIER)
        assert status.locked is False
        assert status.failures == 4

    async def test_threshold_locks(self, guard: LockoutGuard, db_session: AsyncSession):
        await add_attempts(db_session, 5, 4, 3, 2, 1)
        status = await guard.status(IDENTIFIER)
        assert status.locked is True
        assert status.failures == 5
        assert 1 <= status.retry_after <= 15 * 60

    async def test_retry_after_counts_from_threshold_failure(
        self, guard: LockoutGuard, db_session: AsyncSession
    ):
        """Unlock happens when the oldest failure that completes the threshold ages out."""
        now = utc_now()
        for minutes in (12, 10, 9, 8, 7, 6):
            db_session.add(
                LoginAttemptFactory.build(
                    identifier=IDENTIFIER, created_at=now - timedelta(minutes=minutes)
                )
            )
        await db_session.commit()

        status = await guard.status(IDENTIFIER, now=now)
        assert status.locked is True
        # Failure at -10 minutes is the fifth most recent; it leaves the window in 5 minutes
        assert status.retry_after == 5 * 60

    async def test_failures_outside_window_do_not_count(
        self, guard: LockoutGuard, db_session: AsyncSession
    ):
        await add_attempts(db_session, 30, 25, 20, 19, 16)
        assert (await guard.status(IDENTIFIER)).locked is False

    async def test_success_resets_failure_count(
        self, guard: LockoutGuard, db_session: AsyncSession
    ):
        await add_attempts(db_session, 10, 9, 8, 7)
        await add_attempts(db_session, 6, succeeded=True)
        await add_attempts(db_session, 2)

        status = await guard.status(IDENTIFIER)
        assert status.locked is False
        assert status.failures == 1

    async def test_identifier_is_normalized(self, guard: LockoutGuard, db_session: AsyncSession):
        await add_attempts(db_session, 5, 4, 3, 2, 1)
        assert await guard.is_locked("  Teacher@Example.COM ") is True

    async def test_other_identifiers_are_independent(
        self, guard: LockoutGuard, db_session: AsyncSession
    ):
        await add_attempts(db_session, 5, 4, 3, 2, 1)
        assert await guard.is_locked("someone-else@example.com") is False


class TestRecordAttempt:
    async def test_records_normalized_identifier(
        self, guard: LockoutGuard, db_session: AsyncSession
    ):
        attempt = await guard.record_attempt(
            " Teacher@Example.com", False, "10.0.0.1", "x" * 1000
        )
        await db_session.commit()

        assert attempt.identifier == IDENTIFIER
        assert attempt.ip_address == "10.0.0.1"
        assert len(attempt.user_agent) == 512
        assert (await guard.status(IDENTIFIER)).failures == 1

    async def test_purge_older_than(self, guard: LockoutGuard, db_session: AsyncSession):
        await add_attempts(db_session, 60 * 30, 60 * 25, 5)

        assert await guard.purge_older_than(24) == 2
        remaining = await db_session.execute(select(func.count()).select_from(LoginAttempt))
        assert remaining.scalar_one() == 1


class TestFailClosed:
    async def test_storage_error_propagates(self, db_session: AsyncSession):
        """A failed count refuses the login instead of silently allowing it."""
        repo = AsyncMock(spec=LoginAttemptRepository)
        repo.latest_success_since.side_effect = OperationalError("SELECT", {}, Exception("down"))
        guard = LockoutGuard(repo, db_session)

        with pytest.raises(OperationalError):
            await guard.status(IDENTIFIER)

    async def test_record_flush_error_propagates(self):
        session = AsyncMock(spec=AsyncSession)
        session.flush.side_effect = OperationalError("INSERT", {}, Exception("down"))
        repo = MagicMock(spec=LoginAttemptRepository)
        guard = LockoutGuard(repo, session)

        with pytest.raises(OperationalError):
            await guard.record_attempt(IDENTIFIER, False)
        repo.add.assert_called_once()
