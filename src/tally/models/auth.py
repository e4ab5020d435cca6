"""Authentication-related models - refresh tokens, reset tokens, login attempts.

Token rows encode their lifecycle in nullable timestamp columns. ``state()``
is the single place those columns are read; ``revocation()`` and ``usage()``
build the only values ever written to them. Repositories apply those values
in UPDATEs guarded by ``... IS NULL`` so two concurrent transitions of one
row cannot both succeed.
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from src.tally.models.base import utc_now
from src.tally.models.enums import (
    PasswordResetTokenState,
    RefreshTokenState,
    ResetTokenUse,
    RevocationReason,
)
from src.tally.models.user import MAX_EMAIL_LENGTH


class RefreshToken(SQLModel, table=True):
    """One link in a refresh-token chain. Only the SHA-256 of the raw value is stored."""

    __tablename__ = "refresh_tokens"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    token_hash: str = Field(max_length=255, unique=True, index=True)
    expires_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=utc_now)
    revoked_at: datetime | None = Field(default=None)
    revocation_reason: str | None = Field(default=None, max_length=32)
    replaced_by_id: UUID | None = Field(default=None)

    def state(self, now: datetime | None = None) -> RefreshTokenState:
        """Derive the lifecycle state. Revocation wins over expiry."""
        if self.revoked_at is not None:
            if self.revocation_reason == RevocationReason.ROTATED.value:
                return RefreshTokenState.ROTATED
            return RefreshTokenState.REVOKED
        if self.expires_at <= (now or utc_now()):
            return RefreshTokenState.EXPIRED
        return RefreshTokenState.ACTIVE

    @staticmethod
    def revocation(reason: RevocationReason, now: datetime | None = None) -> dict[str, Any]:
        """Column values that end a live token, as rotated or revoked."""
        return {"revoked_at": now or utc_now(), "revocation_reason": reason.value}


class PasswordResetToken(SQLModel, table=True):
    """One-time password reset token. Only the SHA-256 of the raw value is stored."""

    __tablename__ = "password_reset_tokens"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    token_hash: str = Field(max_length=255, unique=True, index=True)
    expires_at: datetime
    created_at: datetime = Field(default_factory=utc_now)
    used_at: datetime | None = Field(default=None)
    used_reason: str | None = Field(default=None, max_length=32)

    def state(self, now: datetime | None = None) -> PasswordResetTokenState:
        if self.used_at is not None:
            if self.used_reason == ResetTokenUse.SUPERSEDED.value:
                return PasswordResetTokenState.SUPERSEDED
            return PasswordResetTokenState.CONSUMED
        if self.expires_at <= (now or utc_now()):
            return PasswordResetTokenState.EXPIRED
        return PasswordResetTokenState.ISSUED

    @staticmethod
    def usage(use: ResetTokenUse, now: datetime | None = None) -> dict[str, Any]:
        """Column values that make an unused token unusable."""
        return {"used_at": now or utc_now(), "used_reason": use.value}


class LoginAttempt(SQLModel, table=True):
    """Append-only login attempt log used for rolling-window lockout."""

    __tablename__ = "login_attempts"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    identifier: str = Field(max_length=MAX_EMAIL_LENGTH, index=True)
    ip_address: str | None = Field(default=None, max_length=64)
    user_agent: str | None = Field(default=None, max_length=512)
    succeeded: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now, index=True)
