"""Database models.

Re-exports all models so metadata is complete after a single import.
"""

from src.tally.models.auth import LoginAttempt, PasswordResetToken, RefreshToken
from src.tally.models.enums import (
    PasswordResetTokenState,
    RefreshTokenState,
    ResetTokenUse,
    RevocationReason,
    UserRole,
    has_permission,
)
from src.tally.models.organization import Organization
from src.tally.models.user import User

__all__ = [
    # Enums
    "PasswordResetTokenState",
    "RefreshTokenState",
    "ResetTokenUse",
    "RevocationReason",
    "UserRole",
    "has_permission",
    # Models
    "LoginAttempt",
    "Organization",
    "PasswordResetToken",
    "RefreshToken",
    "User",
]
