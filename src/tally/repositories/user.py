"""Repository for User entity."""

from uuid import UUID

from sqlmodel import select

from src.tally.models import Organization, User
from src.tally.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Users are looked up by their stored (lowercased) email."""

    model = User

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_active_by_email(self, email: str) -> User | None:
        result = await self.session.execute(
            select(User).where(
                User.email == email,
                User.is_active == True,  # noqa: E712
            )
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        result = await self.session.execute(select(User.id).where(User.email == email))
        return result.first() is not None

    async def get_with_organization_by_email(
        self, email: str
    ) -> tuple[User, Organization] | None:
        """Fetch a user and their organization in one join."""
        result = await self.session.execute(
            select(User, Organization)
            .join(Organization, User.organization_id == Organization.id)  # type: ignore[arg-type]
            .where(User.email == email)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def get_with_organization(self, user_id: UUID) -> tuple[User, Organization] | None:
        result = await self.session.execute(
            select(User, Organization)
            .join(Organization, User.organization_id == Organization.id)  # type: ignore[arg-type]
            .where(User.id == user_id)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]
