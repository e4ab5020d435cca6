"""Password reset - request and completion.

Token states: issued -> consumed | expired | superseded. Requesting a reset
supersedes every unused token of the user before issuing a new one, so at most
one token per user is ever honoured.
"""

import asyncio
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.tally.core.config import get_settings
from src.tally.core.exceptions import ValidationError, service_boundary
from src.tally.core.logging import get_logger
from src.tally.core.notifications import send_password_reset_email
from src.tally.core.security import (
    PasswordHasher,
    generate_opaque_token,
    get_password_hasher,
    hash_token,
    normalize_email,
)
from src.tally.core.security.validators import is_storable_email, new_password_problem
from src.tally.models import PasswordResetToken, PasswordResetTokenState, RevocationReason
from src.tally.models.base import utc_now
from src.tally.repositories import PasswordResetTokenRepository, UserRepository
from src.tally.services.refresh_token_store import RefreshTokenStore

logger = get_logger(__name__)

RESET_REQUESTED_MESSAGE = "If the email exists, a reset link will be sent"
RESET_COMPLETED_MESSAGE = "Password reset successful"
INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired reset token"
EXPIRED_RESET_TOKEN_MESSAGE = "Reset token has expired"


class PasswordResetService:
    def __init__(
        self,
        user_repo: UserRepository,
        reset_repo: PasswordResetTokenRepository,
        token_store: RefreshTokenStore,
        session: AsyncSession,
        hasher: PasswordHasher | None = None,
    ):
        self.user_repo = user_repo
        self.reset_repo = reset_repo
        self.token_store = token_store
        self.session = session
        self.hasher = hasher or get_password_hasher()
        self.settings = get_settings()

    @service_boundary
    async def request_reset(self, email: str | None) -> str:
        """Issue a reset token for an active user and email it.

        The return value is identical whether or not the email is known.
        """
        if not email:
            raise ValidationError("Email required")

        email = normalize_email(email)
        user = None
        if is_storable_email(email):
            user = await self.user_repo.get_active_by_email(email)
        if user is None:
            return RESET_REQUESTED_MESSAGE

        expire_minutes = self.settings.password_reset_expire_minutes
        superseded = await self.reset_repo.supersede_unused_for_user(user.id)
        raw_token = generate_opaque_token()
        self.reset_repo.add(
            PasswordResetToken(
                user_id=user.id,
                token_hash=hash_token(raw_token),
                expires_at=utc_now() + timedelta(minutes=expire_minutes),
            )
        )
        await self.session.commit()
        logger.info("Password reset issued", user_id=str(user.id), superseded=superseded)

        try:
            sent = await asyncio.wait_for(
                asyncio.to_thread(
                    send_password_reset_email, user.email, raw_token, user.name, expire_minutes
                ),
                timeout=self.settings.email_send_timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                "Password reset email timed out",
                timeout=self.settings.email_send_timeout_seconds,
            )
            sent = False
        if not sent:
            logger.warning("Password reset email not delivered", user_id=str(user.id))
        return RESET_REQUESTED_MESSAGE

    @service_boundary
    async def complete_reset(self, raw_token: str | None, new_password: str | None) -> str:
        """Set a new password, consume the token and end every session, atomically."""
        if not raw_token or not new_password:
            raise ValidationError("Token and password required")
        problem = new_password_problem(new_password, self.settings.min_password_length)
        if problem:
            raise ValidationError(problem)

        record = await self.reset_repo.get_unused_by_hash(hash_token(raw_token), for_update=True)
        if record is None:
            raise ValidationError(INVALID_RESET_TOKEN_MESSAGE)
        if record.state() is PasswordResetTokenState.EXPIRED:
            raise ValidationError(EXPIRED_RESET_TOKEN_MESSAGE)

        user = await self.user_repo.get_by_id(record.user_id)
        if user is None or not await self.reset_repo.consume_if_unused(record.id):
            raise ValidationError(INVALID_RESET_TOKEN_MESSAGE)

        user.password_hash = self.hasher.hash(new_password)
        user.updated_at = utc_now()
        revoked = await self.token_store.revoke_all(user.id, RevocationReason.PASSWORD_RESET)
        await self.session.commit()

        logger.info("Password reset completed", user_id=str(user.id), revoked_sessions=revoked)
        return RESET_COMPLETED_MESSAGE

    async def purge_expired(self, retention_days: int) -> int:
        """Delete long-dead reset tokens. Commits."""
        try:
            deleted = await self.reset_repo.cleanup_expired(retention_days)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("Purged password reset tokens", deleted=deleted)
        return deleted
