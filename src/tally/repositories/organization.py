"""Repository for Organization entity."""

from sqlmodel import select

from src.tally.models import Organization
from src.tally.repositories.base import BaseRepository


class OrganizationRepository(BaseRepository[Organization]):
    model = Organization

    async def slug_exists(self, slug: str) -> bool:
        result = await self.session.execute(
            select(Organization.id).where(Organization.slug == slug)
        )
        return result.first() is not None
