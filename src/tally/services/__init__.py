"""Service layer - business operations and transaction control."""

from src.tally.services.lockout_guard import LockoutGuard, LockoutStatus
from src.tally.services.password_reset_service import PasswordResetService
from src.tally.services.refresh_token_store import (
    IssuedRefreshToken,
    RefreshTokenExpiredError,
    RefreshTokenInvalidError,
    RefreshTokenStore,
    RotationResult,
)
from src.tally.services.session_service import SessionResult, SessionService
from src.tally.services.user_service import UserService

__all__ = [
    "IssuedRefreshToken",
    "LockoutGuard",
    "LockoutStatus",
    "PasswordResetService",
    "RefreshTokenExpiredError",
    "RefreshTokenInvalidError",
    "RefreshTokenStore",
    "RotationResult",
    "SessionResult",
    "SessionService",
    "UserService",
]
