"""Organization model - the tenant every user belongs to."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from src.tally.models.base import utc_now

MAX_ORGANIZATION_NAME_LENGTH = 100
MAX_ORGANIZATION_SLUG_LENGTH = 50


class Organization(SQLModel, table=True):
    """A school or other organization (tenant)."""

    __tablename__ = "organizations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=MAX_ORGANIZATION_NAME_LENGTH)
    slug: str = Field(max_length=MAX_ORGANIZATION_SLUG_LENGTH + 10, unique=True, index=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
