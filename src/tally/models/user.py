"""User model - identity scoped to exactly one organization."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from src.tally.models.base import utc_now
from src.tally.models.enums import UserRole

MAX_EMAIL_LENGTH = 255
MAX_USER_NAME_LENGTH = 100


class User(SQLModel, table=True):
    """User account. Never hard-deleted; ``is_active`` is the soft-delete flag."""

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: UUID = Field(foreign_key="organizations.id", index=True)
    email: str = Field(max_length=MAX_EMAIL_LENGTH, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    name: str = Field(max_length=MAX_USER_NAME_LENGTH)
    role: str = Field(default=UserRole.TEACHER.value, max_length=20)
    is_active: bool = Field(default=True, index=True)
    last_login_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

