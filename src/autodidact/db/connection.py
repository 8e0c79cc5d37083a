"""Database connection management with FTS5."""

import logging
from pathlib import Path

import aiosqlite

from autodidact.config import get_db_path
from autodidact.db.schema import apply_schema
from autodidact.errors import StorageUnavailable

logger = logging.getLogger(__name__)


async def create_connection(db_path: Path | str | None = None) -> aiosqlite.Connection:
    """Open the knowledge database and apply the schema.

    For in-memory databases, pass ":memory:".
    """
    db_path = str(db_path or get_db_path())

    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = await aiosqlite.connect(db_path)
    except aiosqlite.Error as exc:
        raise StorageUnavailable(f"Cannot open database at {db_path}: {exc}") from exc
    conn.row_factory = aiosqlite.Row

    # WAL lets the serving surface read while a cycle writes
    await conn.execute("PRAGMA journal_mode=WAL")

    await apply_schema(conn)
    logger.debug("Database ready at %s", db_path)
    return conn
