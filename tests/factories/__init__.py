"""Test factories for generating test data.

Re-exports all factories for convenient imports:
    from tests.factories import UserFactory, OrganizationFactory, ...
"""

from tests.factories.auth import (
    LoginAttemptFactory,
    PasswordResetTokenFactory,
    RefreshTokenFactory,
    generate_token_hash,
)
from tests.factories.base import BaseFactory, generate_uuid, utc_now
from tests.factories.organization import OrganizationFactory
from tests.factories.user import DEFAULT_TEST_PASSWORD, UserFactory

__all__ = [
    # Base
    "BaseFactory",
    "generate_uuid",
    "utc_now",
    # Organization
    "OrganizationFactory",
    # User
    "UserFactory",
    "DEFAULT_TEST_PASSWORD",
    # Auth
    "LoginAttemptFactory",
    "PasswordResetTokenFactory",
    "RefreshTokenFactory",
    "generate_token_hash",
]
