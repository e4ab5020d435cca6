"""Session orchestration - login, refresh, registration, logout, password change.

Composes the password hasher, lockout guard, token codec and refresh token
store into the public credential operations. Every operation is one
transaction: it commits on success and rolls back on any failure.
"""

from dataclasses import dataclass
from typing import NoReturn

import argon2
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.tally.core.config import get_settings
from src.tally.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    RateLimitError,
    TallyError,
    ValidationError,
    service_boundary,
)
from src.tally.core.logging import get_logger
from src.tally.core.security import (
    AccessClaims,
    PasswordHasher,
    TokenCodec,
    get_password_hasher,
    get_token_codec,
    is_valid_email,
    normalize_email,
    slugify,
)
from src.tally.core.security.validators import (
    is_storable_email,
    new_password_problem,
    slug_candidate,
    text_field_problem,
)
from src.tally.models import Organization, RevocationReason, User, UserRole
from src.tally.models.base import utc_now
from src.tally.models.organization import MAX_ORGANIZATION_NAME_LENGTH
from src.tally.models.user import MAX_USER_NAME_LENGTH
from src.tally.repositories import OrganizationRepository, UserRepository
from src.tally.services.lockout_guard import LockoutGuard, LockoutStatus
from src.tally.services.refresh_token_store import (
    ACCOUNT_DEACTIVATED_MESSAGE,
    ORGANIZATION_INACTIVE_MESSAGE,
    RefreshTokenStore,
)

logger = get_logger(__name__)

LOGOUT_MESSAGE = "Logged out successfully"
PASSWORD_CHANGED_MESSAGE = "Password changed successfully"


@dataclass(frozen=True)
class SessionResult:
    """Tokens for a freshly started or rotated session.

    ``refresh_token`` is the raw opaque value; the HTTP layer only ever puts
    it in the cookie.
    """

    access_token: str
    refresh_token: str
    user: User
    organization: Organization


class SessionService:
    def __init__(
        self,
        user_repo: UserRepository,
        org_repo: OrganizationRepository,
        lockout: LockoutGuard,
        token_store: RefreshTokenStore,
        session: AsyncSession,
        hasher: PasswordHasher | None = None,
        codec: TokenCodec | None = None,
    ):
        self.user_repo = user_repo
        self.org_repo = org_repo
        self.lockout = lockout
        self.token_store = token_store
        self.session = session
        self.hasher = hasher or get_password_hasher()
        self.codec = codec or get_token_codec()
        self.settings = get_settings()

    @service_boundary
    async def login(
        self,
        email: str | None,
        password: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SessionResult:
        """Authenticate with email and password.

        Every attempt past the lockout check is recorded, including attempts
        against unknown emails, and unknown emails still pay for one hash
        verification. Emails too long or malformed to be stored fail with the
        same generic error and are not recorded.
        """
        if not email or not password:
            raise ValidationError("Email and password required")

        identifier = normalize_email(email)
        if not is_storable_email(identifier):
            # No account can hold this email; nothing is recorded
            self.hasher.verify(password, self.hasher.dummy_hash)
            logger.warning("Login failed", reason="unstorable_identifier")
            raise AuthenticationError()

        lock = await self.lockout.status(identifier)
        if lock.locked:
            logger.warning("Login blocked by lockout", failures=lock.failures)
            raise RateLimitError(retry_after=lock.retry_after or 1)

        loaded = await self.user_repo.get_with_organization_by_email(identifier)
        if loaded is None:
            self.hasher.verify(password, self.hasher.dummy_hash)
            await self._fail_login(identifier, lock, ip_address, user_agent, "unknown_user")
        user, organization = loaded

        if not user.is_active:
            await self._fail_login(
                identifier, lock, ip_address, user_agent, "user_inactive",
                AuthorizationError(ACCOUNT_DEACTIVATED_MESSAGE),
            )
        if not organization.is_active:
            await self._fail_login(
                identifier, lock, ip_address, user_agent, "organization_inactive",
                AuthorizationError(ORGANIZATION_INACTIVE_MESSAGE),
            )

        verification = self.hasher.verify(password, user.password_hash)
        if not verification.valid:
            await self._fail_login(identifier, lock, ip_address, user_agent, "bad_password")

        await self.lockout.record_attempt(identifier, True, ip_address, user_agent)
        if verification.needs_rehash:
            self._upgrade_hash(user, password)
        user.last_login_at = utc_now()

        result = self._start_session(user, organization)
        await self.session.commit()
        logger.info("Login succeeded", user_id=str(user.id))
        return result

    async def _fail_login(
        self,
        identifier: str,
        lock: LockoutStatus,
        ip_address: str | None,
        user_agent: str | None,
        reason: str,
        error: TallyError | None = None,
    ) -> NoReturn:
        # Persist the attempt before raising; the boundary rolls back what is left
        await self.lockout.record_attempt(identifier, False, ip_address, user_agent)
        await self.session.commit()
        logger.warning("Login failed", reason=reason)
        if lock.failures + 1 >= self.lockout.max_attempts:
            logger.warning("Account lockout triggered", failures=lock.failures + 1)
        raise error or AuthenticationError()

    def _upgrade_hash(self, user: User, password: str) -> None:
        try:
            user.password_hash = self.hasher.hash(password)
        except argon2.exceptions.HashingError as e:
            logger.error("Password hash upgrade failed", user_id=str(user.id), error=str(e))
            return
        user.updated_at = utc_now()
        logger.info("Password hash upgraded", user_id=str(user.id))

    @service_boundary
    async def refresh(self, raw_token: str | None) -> SessionResult:
        """Rotate a refresh token and mint an access token from current user state."""
        if not raw_token:
            raise ValidationError("Refresh token required")

        rotation = await self.token_store.rotate(raw_token)
        return SessionResult(
            access_token=self._issue_access_token(rotation.user, rotation.organization),
            refresh_token=rotation.raw_token,
            user=rotation.user,
            organization=rotation.organization,
        )

    @service_boundary
    async def register(
        self,
        organization_name: str | None,
        email: str | None,
        password: str | None,
        name: str | None,
    ) -> SessionResult:
        """Create an organization with its owner and start their session.

        An existing email yields the same generic failure as any other
        registration conflict.
        """
        if not organization_name or not email or not password or not name:
            raise ValidationError("Missing required fields")
        problem = text_field_problem(
            organization_name, "Organization name", MAX_ORGANIZATION_NAME_LENGTH
        ) or text_field_problem(name, "Name", MAX_USER_NAME_LENGTH)
        if problem:
            raise ValidationError(problem)
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")
        problem = new_password_problem(password, self.settings.min_password_length)
        if problem:
            raise ValidationError(problem)

        # Taken and free emails both pay for one hash
        password_hash = self.hasher.hash(password)
        email = normalize_email(email)
        if await self.user_repo.email_exists(email):
            raise ConflictError("email_exists")

        try:
            organization = Organization(
                name=organization_name,
                slug=await self._unique_slug(organization_name),
            )
            self.org_repo.add(organization)
            await self.session.flush()

            user = User(
                organization_id=organization.id,
                email=email,
                password_hash=password_hash,
                name=name,
                role=UserRole.OWNER.value,
            )
            self.user_repo.add(user)
            await self.session.flush()

            result = self._start_session(user, organization)
            await self.session.commit()
        except IntegrityError as e:
            raise ConflictError("integrity_error") from e

        logger.info(
            "Organization registered",
            organization_id=str(organization.id),
            user_id=str(user.id),
        )
        return result

    async def _unique_slug(self, organization_name: str) -> str:
        base = slugify(organization_name)
        attempt = 0
        while await self.org_repo.slug_exists(slug_candidate(base, attempt)):
            attempt += 1
        return slug_candidate(base, attempt)

    @service_boundary
    async def logout(self, raw_token: str | None) -> str:
        """Revoke the presented refresh token, if any. Always succeeds."""
        if raw_token:
            await self.token_store.revoke(raw_token, RevocationReason.LOGOUT)
            await self.session.commit()
        return LOGOUT_MESSAGE

    @service_boundary
    async def change_password(
        self, user: User, current_password: str | None, new_password: str | None
    ) -> str:
        """Replace the password of an authenticated user and end all their sessions."""
        if not current_password or not new_password:
            raise ValidationError("Current and new password required")
        problem = new_password_problem(
            new_password, self.settings.min_password_length, label="New password"
        )
        if problem:
            raise ValidationError(problem)
        if not self.hasher.verify(current_password, user.password_hash).valid:
            raise AuthenticationError("Current password is incorrect")

        user.password_hash = self.hasher.hash(new_password)
        user.updated_at = utc_now()
        self.user_repo.add(user)
        revoked = await self.token_store.revoke_all(user.id, RevocationReason.PASSWORD_CHANGE)
        await self.session.commit()

        logger.info("Password changed", user_id=str(user.id), revoked_sessions=revoked)
        return PASSWORD_CHANGED_MESSAGE

    def _issue_access_token(self, user: User, organization: Organization) -> str:
        return self.codec.issue(
            AccessClaims(
                user_id=user.id,
                email=user.email,
                name=user.name,
                organization_id=organization.id,
                organization_slug=organization.slug,
                role=user.role,
            )
        )

    def _start_session(self, user: User, organization: Organization) -> SessionResult:
        issued = self.token_store.issue(user.id)
        return SessionResult(
            access_token=self._issue_access_token(user, organization),
            refresh_token=issued.raw_token,
            user=user,
            organization=organization,
        )
