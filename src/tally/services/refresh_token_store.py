"""Refresh token issue, rotation and revocation.

Each refresh token is one link in a forward-only chain. Rotation retires the
presented link and inserts its successor in the same transaction; the retire
step is a conditional UPDATE, so of two concurrent rotations of the same raw
token at most one can win.
"""

from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.tally.core.config import get_settings
from src.tally.core.exceptions import AuthenticationError, AuthorizationError
from src.tally.core.logging import get_logger
from src.tally.core.security import generate_opaque_token, hash_token
from src.tally.models import (
    Organization,
    RefreshToken,
    RefreshTokenState,
    RevocationReason,
    User,
)
from src.tally.models.base import utc_now
from src.tally.repositories import RefreshTokenRepository, UserRepository

logger = get_logger(__name__)

ACCOUNT_DEACTIVATED_MESSAGE = "Account is deactivated"
ORGANIZATION_INACTIVE_MESSAGE = "Organization is inactive"


class RefreshTokenInvalidError(AuthenticationError):
    """Token never existed, or was already rotated or revoked."""

    default_message = "Invalid refresh token"


class RefreshTokenExpiredError(AuthenticationError):
    default_message = "Refresh token expired"


@dataclass(frozen=True)
class IssuedRefreshToken:
    raw_token: str
    record: RefreshToken


@dataclass(frozen=True)
class RotationResult:
    raw_token: str
    record: RefreshToken
    user: User
    organization: Organization


class RefreshTokenStore:
    """Stores only SHA-256 hashes of the opaque values it hands out."""

    def __init__(
        self,
        token_repo: RefreshTokenRepository,
        user_repo: UserRepository,
        session: AsyncSession,
        expire_days: int | None = None,
    ):
        self.token_repo = token_repo
        self.user_repo = user_repo
        self.session = session
        self.expire_days = expire_days or get_settings().refresh_token_expire_days

    def issue(self, user_id: UUID) -> IssuedRefreshToken:
        """Create a new chain link. Added to the session; the caller commits."""
        raw_token = generate_opaque_token()
        record = RefreshToken(
            user_id=user_id,
            token_hash=hash_token(raw_token),
            expires_at=utc_now() + timedelta(days=self.expire_days),
        )
        self.token_repo.add(record)
        return IssuedRefreshToken(raw_token=raw_token, record=record)

    async def rotate(self, raw_token: str) -> RotationResult:
        """Exchange a live refresh token for its successor.

        Raises:
            RefreshTokenInvalidError: Unknown, rotated or revoked token.
            RefreshTokenExpiredError: Token past its expiry.
            AuthorizationError: User or organization is no longer active.
        """
        try:
            now = utc_now()
            record = await self.token_repo.get_by_hash(hash_token(raw_token), for_update=True)
            if record is None:
                raise RefreshTokenInvalidError()

            state = record.state(now)
            if state is RefreshTokenState.ROTATED:
                logger.warning(
                    "Rotated refresh token presented again",
                    user_id=str(record.user_id),
                    token_id=str(record.id),
                )
                raise RefreshTokenInvalidError()
            if state is RefreshTokenState.REVOKED:
                if record.revocation_reason == RevocationReason.DEACTIVATED.value:
                    raise AuthorizationError(ACCOUNT_DEACTIVATED_MESSAGE)
                raise RefreshTokenInvalidError()
            if state is RefreshTokenState.EXPIRED:
                raise RefreshTokenExpiredError()

            loaded = await self.user_repo.get_with_organization(record.user_id)
            if loaded is None:
                raise RefreshTokenInvalidError()
            user, organization = loaded
            if not user.is_active:
                raise AuthorizationError(ACCOUNT_DEACTIVATED_MESSAGE)
            if not organization.is_active:
                raise AuthorizationError(ORGANIZATION_INACTIVE_MESSAGE)

            if not await self.token_repo.revoke_if_active(record.id, RevocationReason.ROTATED, now):
                # Lost the race against a concurrent rotation of the same token
                raise RefreshTokenInvalidError()

            successor = self.issue(user.id)
            await self.session.flush()
            record.replaced_by_id = successor.record.id
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        return RotationResult(
            raw_token=successor.raw_token,
            record=successor.record,
            user=user,
            organization=organization,
        )

    async def revoke(
        self, raw_token: str, reason: RevocationReason = RevocationReason.LOGOUT
    ) -> bool:
        """Revoke a single token if it is still unrevoked. The caller commits."""
        record = await self.token_repo.get_by_hash(hash_token(raw_token))
        if record is None or record.revoked_at is not None:
            return False
        return await self.token_repo.revoke_if_active(record.id, reason)

    async def revoke_all(self, user_id: UUID, reason: RevocationReason) -> int:
        """Revoke every unrevoked token of one user. The caller commits."""
        return await self.token_repo.revoke_all_for_user(user_id, reason)

    async def purge_expired(self, retention_days: int) -> int:
        """Delete long-dead tokens. Commits."""
        try:
            deleted = await self.token_repo.cleanup_expired(retention_days)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("Purged refresh tokens", deleted=deleted, retention_days=retention_days)
        return deleted
