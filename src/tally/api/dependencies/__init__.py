"""FastAPI dependencies - sessions, repositories, services, authentication."""

from src.tally.api.dependencies.auth import (
    AdminUser,
    CurrentPrincipal,
    CurrentUser,
    Principal,
    require_role,
)
from src.tally.api.dependencies.db import DBSession, get_db_session
from src.tally.api.dependencies.services import (
    PasswordResetServiceDep,
    SessionServiceDep,
    UserServiceDep,
)

__all__ = [
    "AdminUser",
    "CurrentPrincipal",
    "CurrentUser",
    "DBSession",
    "PasswordResetServiceDep",
    "Principal",
    "SessionServiceDep",
    "UserServiceDep",
    "get_db_session",
    "require_role",
]
