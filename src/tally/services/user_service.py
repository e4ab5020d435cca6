"""User administration within an organization."""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.tally.core.config import get_settings
from src.tally.core.exceptions import NotFoundError, ValidationError, service_boundary
from src.tally.core.logging import get_logger
from src.tally.core.security import PasswordHasher, get_password_hasher, normalize_email
from src.tally.core.security.validators import is_storable_email, new_password_problem
from src.tally.models import RevocationReason, User, UserRole
from src.tally.models.base import utc_now
from src.tally.repositories import UserRepository
from src.tally.services.refresh_token_store import RefreshTokenStore

logger = get_logger(__name__)

USER_DEACTIVATED_MESSAGE = "User deactivated successfully"


class UserService:
    def __init__(
        self,
        user_repo: UserRepository,
        token_store: RefreshTokenStore,
        session: AsyncSession,
        hasher: PasswordHasher | None = None,
    ):
        self.user_repo = user_repo
        self.token_store = token_store
        self.session = session
        self.hasher = hasher or get_password_hasher()

    @service_boundary
    async def deactivate(self, actor: User, user_id: UUID) -> User:
        """Soft-delete a user of the actor's organization and end their sessions.

        Users are never hard-deleted. The owner and the actor themselves
        cannot be deactivated.
        """
        target = await self.user_repo.get_by_id(user_id)
        if target is None or target.organization_id != actor.organization_id:
            raise NotFoundError("User not found")
        if target.id == actor.id:
            raise ValidationError("Cannot delete your own account")
        if target.role == UserRole.OWNER.value:
            raise ValidationError("Cannot delete the organization owner")

        target.is_active = False
        target.updated_at = utc_now()
        self.user_repo.add(target)
        revoked = await self.token_store.revoke_all(target.id, RevocationReason.DEACTIVATED)
        await self.session.commit()

        logger.info(
            "User deactivated",
            target_user_id=str(target.id),
            revoked_sessions=revoked,
        )
        return target

    @service_boundary
    async def set_password(self, email: str, new_password: str) -> User:
        """Administrative password reset by email. Ends every session of the user."""
        problem = new_password_problem(new_password, get_settings().min_password_length)
        if problem:
            raise ValidationError(problem)
        email = normalize_email(email)
        user = await self.user_repo.get_by_email(email) if is_storable_email(email) else None
        if user is None:
            raise NotFoundError("User not found")

        user.password_hash = self.hasher.hash(new_password)
        user.updated_at = utc_now()
        self.user_repo.add(user)
        revoked = await self.token_store.revoke_all(user.id, RevocationReason.ADMIN)
        await self.session.commit()

        logger.info("Password set by administrator", user_id=str(user.id), revoked_sessions=revoked)
        return user
