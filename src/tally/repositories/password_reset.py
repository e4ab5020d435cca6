"""Repository for PasswordResetToken entity."""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, or_, update
from sqlmodel import select

from src.tally.models import PasswordResetToken, ResetTokenUse
from src.tally.models.base import utc_now
from src.tally.repositories.base import BaseRepository


class PasswordResetTokenRepository(BaseRepository[PasswordResetToken]):
    model = PasswordResetToken

    async def get_unused_by_hash(
        self, token_hash: str, for_update: bool = False
    ) -> PasswordResetToken | None:
        """Get a reset token that has not been consumed or superseded.

        Expired tokens are returned so the caller can report them distinctly.
        """
        query = select(PasswordResetToken).where(
            PasswordResetToken.token_hash == token_hash,
            PasswordResetToken.used_at == None,  # noqa: E711
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def supersede_unused_for_user(self, user_id: UUID, now: datetime | None = None) -> int:
        """Mark every unused token of a user as superseded."""
        stmt = (
            update(PasswordResetToken)
            .where(PasswordResetToken.user_id == user_id)  # type: ignore[arg-type]
            .where(PasswordResetToken.used_at == None)  # type: ignore[arg-type]  # noqa: E711
            .values(**PasswordResetToken.usage(ResetTokenUse.SUPERSEDED, now))
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def consume_if_unused(self, token_id: UUID, now: datetime | None = None) -> bool:
        """Consume a token only if it is still unused. Returns True on success."""
        stmt = (
            update(PasswordResetToken)
            .where(PasswordResetToken.id == token_id)  # type: ignore[arg-type]
            .where(PasswordResetToken.used_at == None)  # type: ignore[arg-type]  # noqa: E711
            .values(**PasswordResetToken.usage(ResetTokenUse.CONSUMED, now))
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) == 1  # type: ignore[attr-defined]

    async def cleanup_expired(self, retention_days: int) -> int:
        """Delete tokens expired, or used, more than retention_days ago."""
        cutoff = utc_now() - timedelta(days=retention_days)
        stmt = delete(PasswordResetToken).where(
            or_(
                PasswordResetToken.expires_at < cutoff,  # type: ignore[arg-type]
                PasswordResetToken.used_at < cutoff,  # type: ignore[arg-type, operator]
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]
