"""Tests for login, refresh, registration, logout and password change."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from src.tally.core.exceptions import (
    REGISTRATION_FAILED_MESSAGE,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InternalError,
    RateLimitError,
    ValidationError,
)
from src.tally.core.security import TokenCodec, get_password_hasher
from src.tally.models import LoginAttempt, Organization, RefreshToken, User, UserRole
from src.tally.repositories import (
    LoginAttemptRepository,
    OrganizationRepository,
    RefreshTokenRepository,
    UserRepository,
)
from src.tally.services import LockoutGuard, RefreshTokenStore, SessionService
from src.tally.services.lockout_guard import LockoutStatus
from tests.factories import DEFAULT_TEST_PASSWORD, OrganizationFactory
from tests.helpers import make_legacy_hash

pytestmark = [pytest.mark.unit, pytest.mark.asyncio]

CODEC = TokenCodec(secret_key="session-service-test-secret-0123456789")


def build_service(session: AsyncSession, lockout: LockoutGuard | None = None) -> SessionService:
    user_repo = UserRepository(session)
    return SessionService(
        user_repo,
        OrganizationRepository(session),
        lockout or LockoutGuard(LoginAttemptRepository(session), session),
        RefreshTokenStore(RefreshTokenRepository(session), user_repo, session),
        session,
        codec=CODEC,
    )


@pytest.fixture
def service(db_session: AsyncSession) -> SessionService:
    return build_service(db_session)


async def attempts(session: AsyncSession) -> list[LoginAttempt]:
    result = await session.execute(select(LoginAttempt).order_by(LoginAttempt.created_at))
    return list(result.scalars().all())


class TestLogin:
    async def test_success(self, service: SessionService, db_session: AsyncSession, user: User):
        user_id, email = user.id, user.email

        result = await service.login(f"  {email.upper()} ", DEFAULT_TEST_PASSWORD, "10.0.0.1", "ua")

        claims = CODEC.verify(result.access_token)
        assert claims.user_id == user_id
        assert claims.role == UserRole.TEACHER.value
        assert result.refresh_token
        assert result.user.last_login_at is not None
        (attempt,) = await attempts(db_session)
        assert attempt.succeeded is True
        assert attempt.identifier == email

    async def test_wrong_password(self, service: SessionService, db_session: AsyncSession, user: User):
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await service.login(user.email, "wrong-password")

        (attempt,) = await attempts(db_session)
        assert attempt.succeeded is False

    async def test_unknown_email_fails_identically(
        self, service: SessionService, db_session: AsyncSession
    ):
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await service.login("nobody@example.com", DEFAULT_TEST_PASSWORD)

        (attempt,) = await attempts(db_session)
        assert attempt.identifier == "nobody@example.com"

    async def test_missing_fields(self, service: SessionService):
        with pytest.raises(ValidationError, match="Email and password required"):
            await service.login("teacher@example.com", None)

    async def test_deactivated_user(self, service: SessionService, db_session: AsyncSession, user: User):
        email = user.email
        user.is_active = False
        await db_session.commit()

        with pytest.raises(AuthorizationError, match="Account is deactivated"):
            await service.login(email, DEFAULT_TEST_PASSWORD)

    async def test_inactive_organization(
        self,
        service: SessionService,
        db_session: AsyncSession,
        organization: Organization,
        user: User,
    ):
        email = user.email
        organization.is_active = False
        await db_session.commit()

        with pytest.raises(AuthorizationError, match="Organization is inactive"):
            await service.login(email, DEFAULT_TEST_PASSWORD)

    async def test_lockout_blocks_correct_password(
        self, service: SessionService, db_session: AsyncSession, user: User
    ):
        email = user.email
        for _ in range(5):
            with pytest.raises(AuthenticationError):
                await service.login(email, "wrong-password")

        with pytest.raises(RateLimitError) as exc_info:
            await service.login(email, DEFAULT_TEST_PASSWORD)
        assert exc_info.value.retry_after > 0
        assert len(await attempts(db_session)) == 5

    async def test_success_resets_failures(self, service: SessionService, user: User):
        email = user.email
        for _ in range(4):
            with pytest.raises(AuthenticationError):
                await service.login(email, "wrong-password")
        await service.login(email, DEFAULT_TEST_PASSWORD)

        for _ in range(4):
            with pytest.raises(AuthenticationError):
                await service.login(email, "wrong-password")
        # Still below the threshold: only four failures since the last success
        await service.login(email, DEFAULT_TEST_PASSWORD)

    async def test_legacy_hash_upgraded_on_login(
        self, service: SessionService, db_session: AsyncSession, user: User
    ):
        user_id, email = user.id, user.email
        user.password_hash = make_legacy_hash(DEFAULT_TEST_PASSWORD)
        await db_session.commit()

        await service.login(email, DEFAULT_TEST_PASSWORD)

        stored = await db_session.get(User, user_id, populate_existing=True)
        assert stored.password_hash.startswith("$argon2id$")
        assert get_password_hasher().verify(DEFAULT_TEST_PASSWORD, stored.password_hash).valid

    async def test_lockout_storage_failure_refuses_login(self, db_session: AsyncSession, user: User):
        """When the attempt log cannot be read the login fails closed."""
        lockout = AsyncMock(spec=LockoutGuard)
        lockout.status.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        service = build_service(db_session, lockout=lockout)

        with pytest.raises(InternalError):
            await service.login(user.email, DEFAULT_TEST_PASSWORD)

    async def test_attempt_log_write_failure_issues_no_session(
        self, db_session: AsyncSession, user: User
    ):
        lockout = AsyncMock(spec=LockoutGuard)
        lockout.max_attempts = 5
        lockout.status.return_value = LockoutStatus(locked=False, failures=0)
        lockout.record_attempt.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        service = build_service(db_session, lockout=lockout)

        with pytest.raises(InternalError):
            await service.login(user.email, DEFAULT_TEST_PASSWORD)

        issued = await db_session.execute(select(RefreshToken))
        assert issued.scalars().all() == []
        assert await attempts(db_session) == []

    @pytest.mark.parametrize("email", ["x" * 250 + "@b.com", "bad\ud800@b.com"])
    async def test_unstorable_email_fails_generically(
        self, service: SessionService, db_session: AsyncSession, email: str
    ):
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await service.login(email, DEFAULT_TEST_PASSWORD)
        assert await attempts(db_session) == []

    async def test_unencodable_password_is_a_wrong_password(
        self, service: SessionService, db_session: AsyncSession, user: User
    ):
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await service.login(user.email, "pass\ud800word")

        (attempt,) = await attempts(db_session)
        assert attempt.succeeded is False


class TestRegister:
    async def test_creates_organization_and_owner(
        self, service: SessionService, db_session: AsyncSession
    ):
        result = await service.register(
            "Hillside Primary", "Head@Hillside.org", "long-enough-pw", "Head Teacher"
        )

        assert result.organization.slug == "hillside-primary"
        assert result.user.role == UserRole.OWNER.value
        assert result.user.email == "head@hillside.org"
        assert result.user.organization_id == result.organization.id
        assert CODEC.verify(result.access_token).organization_slug == "hillside-primary"
        live = await db_session.execute(select(RefreshToken).where(RefreshToken.user_id == result.user.id))
        assert len(live.scalars().all()) == 1

    async def test_slug_collision_gets_suffix(
        self, service: SessionService, db_session: AsyncSession
    ):
        db_session.add(OrganizationFactory.build(slug="hillside-primary"))
        db_session.add(OrganizationFactory.build(slug="hillside-primary-1"))
        await db_session.commit()

        result = await service.register(
            "Hillside Primary", "head@hillside.org", "long-enough-pw", "Head"
        )
        assert result.organization.slug == "hillside-primary-2"

    async def test_duplicate_email_is_generic(self, service: SessionService, user: User):
        with pytest.raises(ConflictError) as exc_info:
            await service.register("Other School", user.email, "long-enough-pw", "Someone")
        assert exc_info.value.message == REGISTRATION_FAILED_MESSAGE
        assert exc_info.value.reason == "email_exists"

    async def test_duplicate_email_pays_for_a_hash(self, service: SessionService, user: User):
        with patch.object(service.hasher, "hash", wraps=service.hasher.hash) as spy:
            with pytest.raises(ConflictError):
                await service.register("Other School", user.email, "long-enough-pw", "Someone")
        spy.assert_called_once_with("long-enough-pw")

    @pytest.mark.parametrize(
        ("organization_name", "email", "password", "name", "message"),
        [
            (None, "a@b.co", "long-enough-pw", "A", "Missing required fields"),
            ("Org", "a@b.co", "long-enough-pw", "", "Missing required fields"),
            ("Org", "not-an-email", "long-enough-pw", "A", "Invalid email format"),
            ("Org", "a@b.co", "short", "A", "Password must be at least 8 characters"),
            ("Org", "a@b.co", "long-enough\ud800", "A", "Password contains invalid characters"),
            ("O" * 101, "a@b.co", "long-enough-pw", "A", "Organization name must be at most 100"),
            ("Org\udc80", "a@b.co", "long-enough-pw", "A", "Organization name contains invalid"),
            ("Org", "a@b.co", "long-enough-pw", "N" * 101, "Name must be at most 100 characters"),
            ("Org", "x" * 250 + "@b.com", "long-enough-pw", "A", "Invalid email format"),
        ],
    )
    async def test_validation(
        self, service: SessionService, organization_name, email, password, name, message
    ):
        with pytest.raises(ValidationError, match=message):
            await service.register(organization_name, email, password, name)


class TestRefreshAndLogout:
    async def test_refresh_requires_token(self, service: SessionService):
        with pytest.raises(ValidationError, match="Refresh token required"):
            await service.refresh(None)

    async def test_refresh_rotates(self, service: SessionService, user: User):
        session = await service.login(user.email, DEFAULT_TEST_PASSWORD)

        rotated = await service.refresh(session.refresh_token)

        assert rotated.refresh_token != session.refresh_token
        assert CODEC.verify(rotated.access_token).user_id == user.id
        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            await service.refresh(session.refresh_token)

    async def test_logout_revokes(self, service: SessionService, user: User):
        session = await service.login(user.email, DEFAULT_TEST_PASSWORD)

        assert await service.logout(session.refresh_token) == "Logged out successfully"
        with pytest.raises(AuthenticationError):
            await service.refresh(session.refresh_token)

    async def test_logout_without_token_succeeds(self, service: SessionService):
        assert await service.logout(None) == "Logged out successfully"


class TestChangePassword:
    async def test_success_revokes_every_session(
        self, service: SessionService, db_session: AsyncSession, user: User
    ):
        first = await service.login(user.email, DEFAULT_TEST_PASSWORD)
        second = await service.login(user.email, DEFAULT_TEST_PASSWORD)

        message = await service.change_password(user, DEFAULT_TEST_PASSWORD, "a-new-password")

        assert message == "Password changed successfully"
        assert get_password_hasher().verify("a-new-password", user.password_hash).valid
        for raw in (first.refresh_token, second.refresh_token):
            with pytest.raises(AuthenticationError):
                await service.refresh(raw)

    async def test_wrong_current_password(self, service: SessionService, user: User):
        with pytest.raises(AuthenticationError, match="Current password is incorrect"):
            await service.change_password(user, "not-my-password", "a-new-password")

    async def test_short_new_password(self, service: SessionService, user: User):
        with pytest.raises(ValidationError, match="New password must be at least 8 characters"):
            await service.change_password(user, DEFAULT_TEST_PASSWORD, "short")

    async def test_unencodable_new_password(self, service: SessionService, user: User):
        with pytest.raises(ValidationError, match="New password contains invalid characters"):
            await service.change_password(user, DEFAULT_TEST_PASSWORD, "a-new-\ud800-password")

    async def test_missing_fields(self, service: SessionService, user: User):
        with pytest.raises(ValidationError, match="Current and new password required"):
            await service.change_password(user, "", "a-new-password")
