"""Rolling-window account lockout over the login attempt log.

There is no stored counter and no stored lock expiry. Each check counts the
failed attempts for an identifier inside the window that came after the most
recent success in that window, so an account unlocks on its own once enough
failures age out, and a successful login resets the count without touching
any rows.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.tally.core.config import get_settings
from src.tally.core.logging import get_logger
from src.tally.core.security import normalize_email
from src.tally.models import LoginAttempt
from src.tally.models.base import utc_now
from src.tally.repositories import LoginAttemptRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class LockoutStatus:
    locked: bool
    failures: int
    retry_after: int | None = None


class LockoutGuard:
    """Decides whether login attempts for an identifier are blocked.

    Storage errors are never swallowed: a failed count or a failed insert
    propagates so the login is refused rather than silently allowed.
    """

    def __init__(
        self,
        attempt_repo: LoginAttemptRepository,
        session: AsyncSession,
        max_attempts: int | None = None,
        window: timedelta | None = None,
    ):
        settings = get_settings()
        self.attempt_repo = attempt_repo
        self.session = session
        self.max_attempts = max_attempts or settings.lockout_max_attempts
        self.window = window or timedelta(minutes=settings.lockout_window_minutes)

    async def status(self, identifier: str, now: datetime | None = None) -> LockoutStatus:
        identifier = normalize_email(identifier)
        now = now or utc_now()
        window_start = now - self.window

        last_success = await self.attempt_repo.latest_success_since(identifier, window_start)
        failures = await self.attempt_repo.failure_times_since(
            identifier, last_success or window_start
        )

        if len(failures) < self.max_attempts:
            return LockoutStatus(locked=False, failures=len(failures))

        # Unlocks once the failure that completed the threshold leaves the window
        pivot = failures[len(failures) - self.max_attempts]
        remaining = (pivot + self.window - now).total_seconds()
        return LockoutStatus(
            locked=True,
            failures=len(failures),
            retry_after=max(1, math.ceil(remaining)),
        )

    async def is_locked(self, identifier: str) -> bool:
        return (await self.status(identifier)).locked

    async def record_attempt(
        self,
        identifier: str,
        succeeded: bool,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginAttempt:
        """Append one attempt row and flush it. The caller commits."""
        attempt = LoginAttempt(
            identifier=normalize_email(identifier),
            succeeded=succeeded,
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
        )
        self.attempt_repo.add(attempt)
        await self.session.flush()
        return attempt

    async def purge_older_than(self, hours: int) -> int:
        """Delete attempts older than ``hours``. Commits."""
        try:
            deleted = await self.attempt_repo.delete_older_than(utc_now() - timedelta(hours=hours))
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("Purged login attempts", deleted=deleted, older_than_hours=hours)
        return deleted
