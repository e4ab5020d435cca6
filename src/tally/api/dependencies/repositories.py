"""Repository factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.tally.api.dependencies.db import DBSession
from src.tally.repositories import (
    LoginAttemptRepository,
    OrganizationRepository,
    PasswordResetTokenRepository,
    RefreshTokenRepository,
    UserRepository,
)


def get_user_repository(session: DBSession) -> UserRepository:
    return UserRepository(session)


def get_organization_repository(session: DBSession) -> OrganizationRepository:
    return OrganizationRepository(session)


def get_token_repository(session: DBSession) -> RefreshTokenRepository:
    return RefreshTokenRepository(session)


def get_password_reset_repository(session: DBSession) -> PasswordResetTokenRepository:
    return PasswordResetTokenRepository(session)


def get_login_attempt_repository(session: DBSession) -> LoginAttemptRepository:
    return LoginAttemptRepository(session)


UserRepo = Annotated[UserRepository, Depends(get_user_repository)]
OrganizationRepo = Annotated[OrganizationRepository, Depends(get_organization_repository)]
TokenRepo = Annotated[RefreshTokenRepository, Depends(get_token_repository)]
PasswordResetRepo = Annotated[PasswordResetTokenRepository, Depends(get_password_reset_repository)]
LoginAttemptRepo = Annotated[LoginAttemptRepository, Depends(get_login_attempt_repository)]
