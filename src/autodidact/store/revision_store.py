"""Versioned history of deployed program texts."""

from datetime import UTC, datetime

import aiosqlite

from autodidact.db.queries import insert_revision, row_to_revision
from autodidact.errors import storage_errors
from autodidact.models.revision import CodeRevision


class RevisionStore:
    """Append-only access to code revisions, ordered by version."""

    def __init__(self, db: aiosqlite.Connection):
        """Initialize with a database connection."""
        self.db = db

    async def latest(self) -> CodeRevision | None:
        """Get the highest-numbered revision."""
        with storage_errors("read latest revision"):
            cursor = await self.db.execute(
                "SELECT * FROM code_revisions ORDER BY version DESC LIMIT 1"
            )
            row = await cursor.fetchone()
        return row_to_revision(row) if row else None

    async def next_version(self) -> int:
        """Version number the next commit will take."""
        latest = await self.latest()
        return latest.version + 1 if latest else 1

    async def create(
        self,
        version: int,
        code: str,
        changes: str | None = None,
        performance: dict[str, object] | None = None,
    ) -> CodeRevision:
        """Persist a new revision. Raises StorageUnavailable on a duplicate version."""
        revision = CodeRevision(
            version=version,
            code=code,
            changes=changes,
            performance=performance or {},
            timestamp=datetime.now(UTC),
        )
        with storage_errors(f"create revision v{version}"):
            await insert_revision(self.db, revision)
        return revision

    async def get(self, version: int) -> CodeRevision | None:
        """Get one revision by version number."""
        with storage_errors(f"read revision v{version}"):
            cursor = await self.db.execute(
                "SELECT * FROM code_revisions WHERE version = ?", (version,)
            )
            row = await cursor.fetchone()
        return row_to_revision(row) if row else None

    async def list_revisions(self, limit: int = 20) -> list[CodeRevision]:
        """Newest revisions first."""
        with storage_errors("list revisions"):
            cursor = await self.db.execute(
                "SELECT * FROM code_revisions ORDER BY version DESC LIMIT ?", (limit,)
            )
            rows = await cursor.fetchall()
        return [row_to_revision(row) for row in rows]
