"""Append-only log of inbound queries."""

import logging
from datetime import UTC, datetime

import aiosqlite

from autodidact.db.queries import insert_query, row_to_query
from autodidact.errors import storage_errors
from autodidact.models.query import QueryLogEntry

logger = logging.getLogger(__name__)


class QueryLog:
    """Records queries from the serving surface; read by the performance analyzer."""

    def __init__(self, db: aiosqlite.Connection):
        """Initialize with a database connection."""
        self.db = db

    async def record(
        self, query: str, keywords: list[str], success: bool = False
    ) -> QueryLogEntry:
        """Append one query with its keywords and outcome."""
        entry = QueryLogEntry(
            query=query,
            keywords=keywords,
            success=success,
            timestamp=datetime.now(UTC),
        )
        with storage_errors("record query"):
            entry_id = await insert_query(self.db, entry)
        logger.debug("Logged query %d (success=%s)", entry_id, success)
        return entry.model_copy(update={"id": entry_id})

    async def recent_failures(self, limit: int = 10) -> list[QueryLogEntry]:
        """Most recent unanswered queries, newest first."""
        with storage_errors("read failed queries"):
            cursor = await self.db.execute(
                """SELECT * FROM query_log WHERE success = 0
                ORDER BY timestamp DESC, id DESC LIMIT ?""",
                (limit,),
            )
            rows = await cursor.fetchall()
        return [row_to_query(row) for row in rows]
