"""Code revision models."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field


class CodeRevision(BaseModel):
    """A validated program text accepted for deployment."""

    version: int = Field(ge=1)
    code: str
    changes: str | None = None
    performance: dict[str, object] = Field(default_factory=dict)
    timestamp: datetime | None = None


@dataclass(frozen=True)
class BackupSnapshot:
    """Copy of the running program taken before a deployment attempt."""

    path: Path
    timestamp: int  # epoch milliseconds

    def read(self) -> str:
        """Return the snapshot's program text."""
        return self.path.read_text(encoding="utf-8")
