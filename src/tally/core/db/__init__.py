"""Database utilities - engine and session."""

from src.tally.core.db.engine import dispose_engine, get_engine
from src.tally.core.db.migrations import run_migrations_sync
from src.tally.core.db.session import get_session

__all__ = [
    "dispose_engine",
    "get_engine",
    "get_session",
    "run_migrations_sync",
]
