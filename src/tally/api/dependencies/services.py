"""Service factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.tally.api.dependencies.db import DBSession
from src.tally.api.dependencies.repositories import (
    LoginAttemptRepo,
    OrganizationRepo,
    PasswordResetRepo,
    TokenRepo,
    UserRepo,
)
from src.tally.services import (
    LockoutGuard,
    PasswordResetService,
    RefreshTokenStore,
    SessionService,
    UserService,
)


def get_refresh_token_store(
    token_repo: TokenRepo, user_repo: UserRepo, session: DBSession
) -> RefreshTokenStore:
    return RefreshTokenStore(token_repo, user_repo, session)


TokenStoreDep = Annotated[RefreshTokenStore, Depends(get_refresh_token_store)]


def get_lockout_guard(attempt_repo: LoginAttemptRepo, session: DBSession) -> LockoutGuard:
    return LockoutGuard(attempt_repo, session)


def get_session_service(
    user_repo: UserRepo,
    org_repo: OrganizationRepo,
    lockout: Annotated[LockoutGuard, Depends(get_lockout_guard)],
    token_store: TokenStoreDep,
    session: DBSession,
) -> SessionService:
    return SessionService(user_repo, org_repo, lockout, token_store, session)


def get_password_reset_service(
    user_repo: UserRepo,
    reset_repo: PasswordResetRepo,
    token_store: TokenStoreDep,
    session: DBSession,
) -> PasswordResetService:
    return PasswordResetService(user_repo, reset_repo, token_store, session)


def get_user_service(
    user_repo: UserRepo, token_store: TokenStoreDep, session: DBSession
) -> UserService:
    return UserService(user_repo, token_store, session)


SessionServiceDep = Annotated[SessionService, Depends(get_session_service)]
PasswordResetServiceDep = Annotated[PasswordResetService, Depends(get_password_reset_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
