"""Query helpers for common database operations."""

import json
from datetime import UTC, datetime

import aiosqlite

from autodidact.models.entry import DEFAULT_CONFIDENCE, KnowledgeEntry
from autodidact.models.query import QueryLogEntry
from autodidact.models.revision import CodeRevision


def row_to_entry(row: aiosqlite.Row) -> KnowledgeEntry:
    """Convert a database row to a KnowledgeEntry."""
    return KnowledgeEntry(
        id=row["id"],
        topic=row["topic"],
        source=row["source"],
        content=row["content"],
        confidence=row["confidence"],
        last_updated=datetime.fromisoformat(row["last_updated"]),
        access_count=row["access_count"],
    )


def row_to_query(row: aiosqlite.Row) -> QueryLogEntry:
    """Convert a database row to a QueryLogEntry."""
    return QueryLogEntry(
        id=row["id"],
        query=row["query"],
        keywords=json.loads(row["keywords"]),
        success=bool(row["success"]),
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


def row_to_revision(row: aiosqlite.Row) -> CodeRevision:
    """Convert a database row to a CodeRevision."""
    return CodeRevision(
        version=row["version"],
        code=row["code"],
        changes=row["changes"],
        performance=json.loads(row["performance"]),
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


async def upsert_entry(
    db: aiosqlite.Connection,
    topic: str,
    source: str,
    content: str,
    increment: float,
    now: datetime | None = None,
) -> None:
    """Insert or merge the (topic, source) entry, adding increment to confidence.

    A new row starts from the default confidence plus one increment, the same
    value an upsert with ``$inc`` produces against a defaulted document.
    """
    stamp = (now or datetime.now(UTC)).isoformat()
    await db.execute(
        """INSERT INTO knowledge_entries (topic, source, content, confidence, last_updated)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(topic, source) DO UPDATE SET
            content = excluded.content,
            last_updated = excluded.last_updated,
            confidence = knowledge_entries.confidence + ?""",
        (topic, source, content, DEFAULT_CONFIDENCE + increment, stamp, increment),
    )
    await db.commit()


async def get_entry(db: aiosqlite.Connection, topic: str, source: str) -> KnowledgeEntry | None:
    """Get the entry for a (topic, source) pair."""
    cursor = await db.execute(
        "SELECT * FROM knowledge_entries WHERE topic = ? AND source = ?", (topic, source)
    )
    row = await cursor.fetchone()
    return row_to_entry(row) if row else None


async def increment_access(db: aiosqlite.Connection, entry_ids: list[int]) -> None:
    """Bump access_count for the given entry IDs."""
    if not entry_ids:
        return
    placeholders = ",".join("?" for _ in entry_ids)
    await db.execute(
        "UPDATE knowledge_entries SET access_count = access_count + 1 WHERE id IN ("  # noqa: S608
        + placeholders
        + ")",
        entry_ids,
    )
    await db.commit()


async def insert_query(db: aiosqlite.Connection, entry: QueryLogEntry) -> int:
    """Append a query log record and return its row ID."""
    cursor = await db.execute(
        "INSERT INTO query_log (query, keywords, success, timestamp) VALUES (?, ?, ?, ?)",
        (
            entry.query,
            json.dumps(entry.keywords),
            int(entry.success),
            entry.timestamp.isoformat() if entry.timestamp else _now_iso(),
        ),
    )
    await db.commit()
    return cursor.lastrowid or 0


async def insert_revision(db: aiosqlite.Connection, revision: CodeRevision) -> None:
    """Append a code revision. Versions are unique."""
    await db.execute(
        """INSERT INTO code_revisions (version, code, changes, performance, timestamp)
        VALUES (?, ?, ?, ?, ?)""",
        (
            revision.version,
            revision.code,
            revision.changes,
            json.dumps(revision.performance),
            revision.timestamp.isoformat() if revision.timestamp else _now_iso(),
        ),
    )
    await db.commit()


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()
