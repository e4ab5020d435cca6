"""Repository layer - data access abstraction."""

from src.tally.repositories.base import BaseRepository
from src.tally.repositories.login_attempt import LoginAttemptRepository
from src.tally.repositories.organization import OrganizationRepository
from src.tally.repositories.password_reset import PasswordResetTokenRepository
from src.tally.repositories.token import RefreshTokenRepository
from src.tally.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "LoginAttemptRepository",
    "OrganizationRepository",
    "PasswordResetTokenRepository",
    "RefreshTokenRepository",
    "UserRepository",
]
