from datetime import datetime
from uuid import UUID

from src.tally.schemas.base import CamelModel


class UserRead(CamelModel):
    id: UUID
    email: str
    name: str
    role: str


class UserProfile(UserRead):
    last_login_at: datetime | None = None
    created_at: datetime


class OrganizationRead(CamelModel):
    id: UUID
    name: str
    slug: str
