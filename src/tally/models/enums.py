"""Shared enums for models."""

from enum import Enum


class UserRole(str, Enum):
    """User role within an organization."""

    OWNER = "owner"
    ADMIN = "admin"
    TEACHER = "teacher"
    READONLY = "readonly"

    @property
    def level(self) -> int:
        return ROLE_HIERARCHY[self]


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.OWNER: 4,
    UserRole.ADMIN: 3,
    UserRole.TEACHER: 2,
    UserRole.READONLY: 1,
}


def has_permission(role: str, required: UserRole) -> bool:
    """Check whether ``role`` is at least ``required`` in the hierarchy.

    Unknown role strings have no permissions.
    """
    try:
        return UserRole(role).level >= required.level
    except ValueError:
        return False


class RefreshTokenState(str, Enum):
    """Lifecycle state of one refresh-token chain link."""

    ACTIVE = "active"
    ROTATED = "rotated"
    REVOKED = "revoked"
    EXPIRED = "expired"


class RevocationReason(str, Enum):
    """Why a refresh token stopped being live."""

    ROTATED = "rotated"
    LOGOUT = "logout"
    PASSWORD_RESET = "password_reset"
    PASSWORD_CHANGE = "password_change"
    DEACTIVATED = "deactivated"
    ADMIN = "admin"


class PasswordResetTokenState(str, Enum):
    """Lifecycle state of a password reset token."""

    ISSUED = "issued"
    CONSUMED = "consumed"
    SUPERSEDED = "superseded"
    EXPIRED = "expired"


class ResetTokenUse(str, Enum):
    """Why a password reset token stopped being usable."""

    CONSUMED = "consumed"
    SUPERSEDED = "superseded"
