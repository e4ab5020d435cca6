"""Test helper functions for common data creation patterns."""

import base64
import hashlib
import os

from httpx import AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.tally.core.config import get_settings
from src.tally.core.security.passwords import LEGACY_PBKDF2_ITERATIONS
from src.tally.models import Organization, User, UserRole
from tests.factories import DEFAULT_TEST_PASSWORD, OrganizationFactory, UserFactory


def make_legacy_hash(password: str, salt: bytes | None = None) -> str:
    """Build a hash in the pre-Argon2 ``base64(salt):base64(pbkdf2)`` format."""
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt, LEGACY_PBKDF2_ITERATIONS, dklen=32
    )
    return f"{base64.b64encode(salt).decode()}:{base64.b64encode(digest).decode()}"


async def create_organization_with_owner(
    session: AsyncSession, **org_kwargs
) -> tuple[Organization, User]:
    """Create an organization and its owner.

    Args:
        session: Database session
        **org_kwargs: Additional args passed to OrganizationFactory

    Returns:
        Tuple of (organization, owner)
    """
    org = OrganizationFactory.build(**org_kwargs)
    session.add(org)
    await session.flush()

    owner = UserFactory.owner(organization_id=org.id)
    session.add(owner)
    await session.commit()
    return org, owner


async def create_member(
    session: AsyncSession,
    organization: Organization,
    role: UserRole = UserRole.TEACHER,
    **user_kwargs,
) -> User:
    """Create a user in an existing organization."""
    member = UserFactory.build(organization_id=organization.id, role=role.value, **user_kwargs)
    session.add(member)
    await session.commit()
    return member


async def login(client: AsyncClient, email: str, password: str = DEFAULT_TEST_PASSWORD) -> dict:
    """Log in through the API and return the JSON body."""
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def auth_header(session: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {session['accessToken']}"}


def refresh_cookie(response: Response) -> str | None:
    """Raw refresh token from the response's Set-Cookie header, if any."""
    name = get_settings().refresh_cookie_name
    for header in response.headers.get_list("set-cookie"):
        key, _, rest = header.partition("=")
        if key == name:
            return rest.split(";", 1)[0]
    return None
