"""Authentication and authorization dependencies."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.tally.api.dependencies.repositories import UserRepo
from src.tally.core.logging import bind_user_context
from src.tally.core.security import AccessClaims, get_token_codec
from src.tally.models import Organization, User, UserRole, has_permission

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Principal:
    """The caller behind a verified access token, reloaded from storage."""

    user: User
    organization: Organization
    claims: AccessClaims


async def get_current_principal(
    user_repo: UserRepo,
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    """Validate the bearer token and reload the user and organization.

    Access tokens are not revocable, but a deactivated user or organization is
    rejected here on every request.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
        )

    claims = get_token_codec().verify(authorization[len(BEARER_PREFIX) :].strip())
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    loaded = await user_repo.get_with_organization(claims.user_id)
    if loaded is None or not loaded[0].is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    user, organization = loaded
    if not organization.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization is inactive",
        )

    bind_user_context(user.id, organization.id, user.email)
    return Principal(user=user, organization=organization, claims=claims)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_current_user(principal: CurrentPrincipal) -> User:
    return principal.user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_role(required: UserRole) -> Callable[[Principal], Awaitable[User]]:
    """Dependency factory: the caller's current role must be at least ``required``.

    The role is read from storage, not from the token, so a demotion takes
    effect immediately.
    """

    async def dependency(principal: CurrentPrincipal) -> User:
        if not has_permission(principal.user.role, required):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden - Insufficient permissions",
            )
        return principal.user

    return dependency


AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]
