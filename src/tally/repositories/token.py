"""Repository for RefreshToken entity."""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, update
from sqlmodel import select

from src.tally.models import RefreshToken, RevocationReason
from src.tally.models.base import utc_now
from src.tally.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Data access for refresh-token chain links. Never commits."""

    model = RefreshToken

    async def get_by_hash(self, token_hash: str, for_update: bool = False) -> RefreshToken | None:
        """Get refresh token by its hash, regardless of state.

        Args:
            token_hash: The hashed token to look up
            for_update: If True, locks the row so concurrent rotations serialise.
                        Backends without row locks (SQLite) ignore it.
        """
        query = select(RefreshToken).where(RefreshToken.token_hash == token_hash)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def revoke_if_active(
        self, token_id: UUID, reason: RevocationReason, now: datetime | None = None
    ) -> bool:
        """Revoke one token only if nobody revoked it first.

        Returns True when this call performed the revocation.
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == token_id)  # type: ignore[arg-type]
            .where(RefreshToken.revoked_at == None)  # type: ignore[arg-type]  # noqa: E711
            .values(**RefreshToken.revocation(reason, now))
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) == 1  # type: ignore[attr-defined]

    async def revoke_all_for_user(
        self, user_id: UUID, reason: RevocationReason, now: datetime | None = None
    ) -> int:
        """Revoke every unrevoked refresh token of one user.

        Returns the number of tokens revoked.
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id)  # type: ignore[arg-type]
            .where(RefreshToken.revoked_at == None)  # type: ignore[arg-type]  # noqa: E711
            .values(**RefreshToken.revocation(reason, now))
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def count_live_for_user(self, user_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at == None,  # noqa: E711
                RefreshToken.expires_at > utc_now(),
            )
        )
        return int(result.scalar_one())

    async def cleanup_expired(self, retention_days: int) -> int:
        """Delete tokens expired, or revoked, more than retention_days ago.

        Returns:
            Number of tokens deleted
        """
        cutoff = utc_now() - timedelta(days=retention_days)
        stmt = delete(RefreshToken).where(
            or_(
                RefreshToken.expires_at < cutoff,  # type: ignore[arg-type]
                and_(
                    RefreshToken.revoked_at != None,  # type: ignore[arg-type]  # noqa: E711
                    RefreshToken.revoked_at < cutoff,  # type: ignore[arg-type, operator]
                ),
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]
