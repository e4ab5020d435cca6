"""Reusable migration runner for both production and tests."""

from alembic.config import Config

from alembic import command


def run_migrations_sync(database_url: str | None = None, config_path: str = "alembic.ini") -> None:
    """Upgrade the database to the latest revision.

    Args:
        database_url: Overrides DATABASE_URL from settings when given.
        config_path: Path to alembic.ini.

    Must not be called from a running event loop; the migration environment
    starts its own. Use ``asyncio.to_thread`` from async code.
    """
    alembic_cfg = Config(config_path)
    if database_url:
        alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, "head")
