"""Upsert and lookup operations for harvested knowledge."""

import logging
from datetime import datetime
from typing import Any

import aiosqlite

from autodidact.db.queries import get_entry, increment_access, row_to_entry, upsert_entry
from autodidact.errors import storage_errors
from autodidact.models.entry import MAX_CONTENT_CHARS, KnowledgeEntry

logger = logging.getLogger(__name__)

CONFIDENCE_INCREMENT = 0.1


class KnowledgeStore:
    """Per-(topic, source) knowledge with confidence accumulation."""

    def __init__(self, db: aiosqlite.Connection):
        """Initialize with a database connection."""
        self.db = db

    async def upsert(
        self,
        topic: str,
        source: str,
        content: str,
        increment: float = CONFIDENCE_INCREMENT,
    ) -> KnowledgeEntry:
        """Store content for a (topic, source) pair, bumping its confidence."""
        content = content[:MAX_CONTENT_CHARS]
        with storage_errors(f"upsert {topic!r} from {source}"):
            await upsert_entry(self.db, topic, source, content, increment)
            entry = await get_entry(self.db, topic, source)
        if entry is None:
            raise RuntimeError(f"Entry for {topic!r} from {source} vanished after upsert")
        logger.debug("Upserted %s from %s (confidence %.2f)", topic, source, entry.confidence)
        return entry

    async def get_entry(self, topic: str, source: str) -> KnowledgeEntry | None:
        """Get the entry for one (topic, source) pair."""
        with storage_errors(f"get {topic!r} from {source}"):
            return await get_entry(self.db, topic, source)

    async def get_entries(self, topic: str) -> list[KnowledgeEntry]:
        """Get every source's entry for a topic."""
        with storage_errors(f"get entries for {topic!r}"):
            cursor = await self.db.execute(
                "SELECT * FROM knowledge_entries WHERE topic = ? ORDER BY id", (topic,)
            )
            rows = await cursor.fetchall()
        return [row_to_entry(row) for row in rows]

    async def exists(self, topic: str) -> bool:
        """Return True if any source has an entry for the topic."""
        with storage_errors(f"check {topic!r}"):
            cursor = await self.db.execute(
                "SELECT 1 FROM knowledge_entries WHERE topic = ? LIMIT 1", (topic,)
            )
            row = await cursor.fetchone()
        return row is not None

    async def find_stale(self, older_than: datetime, limit: int = 5) -> list[KnowledgeEntry]:
        """Entries whose last update precedes ``older_than`` (timezone-aware, UTC)."""
        with storage_errors("find stale entries"):
            cursor = await self.db.execute(
                """SELECT * FROM knowledge_entries WHERE last_updated < ?
                ORDER BY last_updated LIMIT ?""",
                (older_than.isoformat(), limit),
            )
            rows = await cursor.fetchall()
        return [row_to_entry(row) for row in rows]

    async def find_popular(self, limit: int = 5) -> list[KnowledgeEntry]:
        """Entries with the highest access count."""
        with storage_errors("find popular entries"):
            cursor = await self.db.execute(
                "SELECT * FROM knowledge_entries ORDER BY access_count DESC, id LIMIT ?",
                (limit,),
            )
            rows = await cursor.fetchall()
        return [row_to_entry(row) for row in rows]

    async def search(self, query: str, limit: int = 5) -> list[KnowledgeEntry]:
        """Full-text search over topic and content, best BM25 match first."""
        fts_query = _escape_fts_query(query)
        if not fts_query:
            return []
        with storage_errors(f"search {query!r}"):
            cursor = await self.db.execute(
                """SELECT e.* FROM knowledge_fts f
                JOIN knowledge_entries e ON e.id = f.rowid
                WHERE knowledge_fts MATCH ?
                ORDER BY bm25(knowledge_fts) LIMIT ?""",
                (fts_query, limit),
            )
            rows = await cursor.fetchall()
        return [row_to_entry(row) for row in rows]

    async def record_access(self, entry_ids: list[int]) -> None:
        """Count a read of each entry toward its popularity."""
        with storage_errors("record access"):
            await increment_access(self.db, entry_ids)

    async def stats(self) -> dict[str, Any]:
        """Return entry counts overall and per source."""
        stats: dict[str, Any] = {}
        with storage_errors("collect stats"):
            cursor = await self.db.execute(
                "SELECT COUNT(*) AS total, COUNT(DISTINCT topic) AS topics FROM knowledge_entries"
            )
            row = await cursor.fetchone()
            if row is None:
                raise RuntimeError("COUNT query returned no rows")
            stats["total_entries"] = row["total"]
            stats["topics"] = row["topics"]

            cursor = await self.db.execute(
                "SELECT source, COUNT(*) AS cnt FROM knowledge_entries"
                " GROUP BY source ORDER BY cnt DESC"
            )
            stats["by_source"] = {row["source"]: row["cnt"] for row in await cursor.fetchall()}
        return stats


def _escape_fts_query(query: str) -> str:
    """Quote each token so FTS5 operators in user text are taken literally.

    Tokens are OR-ed: any keyword hit is a candidate answer.
    """
    tokens = [token.replace('"', "") for token in query.split()]
    return " OR ".join(f'"{token}"' for token in tokens if token)
