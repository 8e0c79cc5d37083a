"""DDL and migrations for the knowledge database."""

import aiosqlite

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS knowledge_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic TEXT NOT NULL,
    source TEXT NOT NULL DEFAULT 'unknown',
    content TEXT NOT NULL,
    confidence REAL NOT NULL DEFAULT 0.7,
    last_updated TEXT NOT NULL,
    access_count INTEGER NOT NULL DEFAULT 0,
    UNIQUE(topic, source)
);

CREATE INDEX IF NOT EXISTS idx_knowledge_topic ON knowledge_entries(topic);
CREATE INDEX IF NOT EXISTS idx_knowledge_updated ON knowledge_entries(last_updated);
CREATE INDEX IF NOT EXISTS idx_knowledge_access ON knowledge_entries(access_count);

CREATE VIRTUAL TABLE IF NOT EXISTS knowledge_fts USING fts5(
    topic,
    content,
    content='knowledge_entries',
    content_rowid='id',
    tokenize='porter unicode61'
);

-- Triggers to keep FTS in sync with the content table
CREATE TRIGGER IF NOT EXISTS knowledge_fts_ai AFTER INSERT ON knowledge_entries BEGIN
    INSERT INTO knowledge_fts(rowid, topic, content)
    VALUES (new.id, new.topic, new.content);
END;

CREATE TRIGGER IF NOT EXISTS knowledge_fts_ad AFTER DELETE ON knowledge_entries BEGIN
    INSERT INTO knowledge_fts(knowledge_fts, rowid, topic, content)
    VALUES ('delete', old.id, old.topic, old.content);
END;

CREATE TRIGGER IF NOT EXISTS knowledge_fts_au AFTER UPDATE OF topic, content
ON knowledge_entries BEGIN
    INSERT INTO knowledge_fts(knowledge_fts, rowid, topic, content)
    VALUES ('delete', old.id, old.topic, old.content);
    INSERT INTO knowledge_fts(rowid, topic, content)
    VALUES (new.id, new.topic, new.content);
END;

CREATE TABLE IF NOT EXISTS query_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    query TEXT NOT NULL,
    keywords TEXT NOT NULL DEFAULT '[]',
    success INTEGER NOT NULL DEFAULT 0,
    timestamp TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_query_failed ON query_log(success, timestamp);

CREATE TABLE IF NOT EXISTS code_revisions (
    version INTEGER PRIMARY KEY,
    code TEXT NOT NULL,
    changes TEXT,
    performance TEXT NOT NULL DEFAULT '{}',
    timestamp TEXT NOT NULL
);
"""


async def apply_schema(db: aiosqlite.Connection) -> None:
    """Apply the database schema."""
    await db.executescript(SCHEMA_SQL)

    cursor = await db.execute("SELECT version FROM schema_version")
    row = await cursor.fetchone()
    if row is None:
        await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

    await db.commit()
