"""Maintenance commands.

Usage:
    python -m src.tally.cli migrate
    python -m src.tally.cli cleanup
    python -m src.tally.cli reset-password --email admin@example.com --password '...'
"""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from dataclasses import asdict, dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from src.tally.core.config import get_settings
from src.tally.core.db import dispose_engine, get_session, run_migrations_sync
from src.tally.core.exceptions import TallyError
from src.tally.core.logging import get_logger, setup_logging
from src.tally.repositories import (
    LoginAttemptRepository,
    PasswordResetTokenRepository,
    RefreshTokenRepository,
    UserRepository,
)
from src.tally.services import (
    LockoutGuard,
    PasswordResetService,
    RefreshTokenStore,
    UserService,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class CleanupReport:
    login_attempts: int
    refresh_tokens: int
    reset_tokens: int


async def run_cleanup(engine: AsyncEngine | None = None) -> CleanupReport:
    """Purge aged login attempts and long-dead refresh and reset tokens."""
    settings = get_settings()
    async with get_session(engine) as session:
        user_repo = UserRepository(session)
        token_store = RefreshTokenStore(RefreshTokenRepository(session), user_repo, session)
        lockout = LockoutGuard(LoginAttemptRepository(session), session)
        reset_service = PasswordResetService(
            user_repo, PasswordResetTokenRepository(session), token_store, session
        )

        report = CleanupReport(
            login_attempts=await lockout.purge_older_than(settings.login_attempt_retention_hours),
            refresh_tokens=await token_store.purge_expired(settings.token_cleanup_retention_days),
            reset_tokens=await reset_service.purge_expired(settings.token_cleanup_retention_days),
        )
    logger.info("Cleanup complete", **asdict(report))
    return report


async def run_reset_password(email: str, password: str, engine: AsyncEngine | None = None) -> None:
    async with get_session(engine) as session:
        user_repo = UserRepository(session)
        token_store = RefreshTokenStore(RefreshTokenRepository(session), user_repo, session)
        await UserService(user_repo, token_store, session).set_password(email, password)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Tally maintenance commands")
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("migrate", help="Upgrade the database schema to the latest revision")
    subcommands.add_parser(
        "cleanup", help="Purge old login attempts and expired or revoked tokens"
    )

    reset = subcommands.add_parser(
        "reset-password", help="Set a user's password and revoke their sessions"
    )
    reset.add_argument("--email", required=True)
    reset.add_argument("--password", required=True)

    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> None:
    try:
        if args.command == "cleanup":
            await run_cleanup()
        else:
            await run_reset_password(args.email, args.password)
    finally:
        await dispose_engine()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(get_settings().debug)
    if args.command == "migrate":
        run_migrations_sync()
        logger.info("Migrations applied")
        return 0
    try:
        asyncio.run(_run(args))
    except TallyError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
