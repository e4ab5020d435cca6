"""Repository for the append-only LoginAttempt log."""

from datetime import datetime

from sqlalchemy import delete, func
from sqlmodel import select

from src.tally.models import LoginAttempt
from src.tally.repositories.base import BaseRepository


class LoginAttemptRepository(BaseRepository[LoginAttempt]):
    """Rows are only ever inserted, read and purged by age."""

    model = LoginAttempt

    async def latest_success_since(self, identifier: str, since: datetime) -> datetime | None:
        result = await self.session.execute(
            select(func.max(LoginAttempt.created_at)).where(
                LoginAttempt.identifier == identifier,
                LoginAttempt.succeeded == True,  # noqa: E712
                LoginAttempt.created_at > since,
            )
        )
        return result.scalar_one_or_none()

    async def failure_times_since(self, identifier: str, since: datetime) -> list[datetime]:
        """Timestamps of failed attempts after ``since``, oldest first."""
        result = await self.session.execute(
            select(LoginAttempt.created_at)
            .where(
                LoginAttempt.identifier == identifier,
                LoginAttempt.succeeded == False,  # noqa: E712
                LoginAttempt.created_at > since,
            )
            .order_by(LoginAttempt.created_at.asc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def delete_older_than(self, cutoff: datetime) -> int:
        stmt = delete(LoginAttempt).where(
            LoginAttempt.created_at < cutoff  # type: ignore[arg-type]
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]
