"""Database connection helper for the SQLite record store."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from repocache.data.config import get_settings

SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    name TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at INTEGER NOT NULL
)
"""


def get_db_path() -> Path:
    """Get the database path from settings (REPOCACHE_DB_PATH) or default."""
    return get_settings().db_path


@asynccontextmanager
async def get_db(db_path: Path | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager for DB connections with Row factory.

    Creates the parent directory and the records table on first use.

    Args:
        db_path: Optional path to the database. If not provided, uses
                 REPOCACHE_DB_PATH or defaults to 'data/repocache.db'.

    Yields:
        aiosqlite.Connection configured with Row factory for dict-like access.
    """
    if db_path is None:
        db_path = get_db_path()

    db_path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute(SCHEMA)
        yield db
