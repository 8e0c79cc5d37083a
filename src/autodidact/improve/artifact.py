"""The deployable program file and its pre-deployment snapshots."""

import logging
import os
import tempfile
import time
from importlib.resources import files
from pathlib import Path

from autodidact.models.revision import BackupSnapshot
from autodidact.store.revision_store import RevisionStore

logger = logging.getLogger(__name__)


def bundled_program_text() -> str:
    """The program shipped with the package, used until a revision exists."""
    return files("autodidact").joinpath("program.py").read_text(encoding="utf-8")


class ProgramArtifact:
    """The program text the process supervisor runs, stored outside the package.

    ``python -m autodidact`` loads this file by path, so replacing it and
    restarting swaps the running program without touching installed code.
    Writers are the deployment controller's commit and rollback steps only.
    """

    def __init__(self, path: Path) -> None:
        """Initialize with the artifact location."""
        self.path = path

    def exists(self) -> bool:
        """Whether the artifact has been materialized."""
        return self.path.is_file()

    def read(self) -> str:
        """Return the current program text."""
        return self.path.read_text(encoding="utf-8")

    def write(self, text: str) -> None:
        """Replace the program text atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".program-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def backup(self, backup_dir: Path) -> BackupSnapshot:
        """Copy the current program text to a new timestamped snapshot."""
        backup_dir.mkdir(parents=True, exist_ok=True)
        timestamp = int(time.time() * 1000)
        path = backup_dir / f"backup_{timestamp}.py"
        while path.exists():
            timestamp += 1
            path = backup_dir / f"backup_{timestamp}.py"
        path.write_text(self.read(), encoding="utf-8")
        logger.info("Backed up running program to %s", path)
        return BackupSnapshot(path=path, timestamp=timestamp)

    def restore(self, snapshot: BackupSnapshot) -> None:
        """Overwrite the program text with a snapshot."""
        self.write(snapshot.read())
        logger.warning("Restored running program from %s", snapshot.path)

    async def initialize(self, revisions: RevisionStore, default_text: str) -> str:
        """Materialize the artifact on first start and return the running text.

        A missing file is seeded from the latest revision, else from the bundled
        program. An existing file is kept as is: after a rollback it holds the
        restored snapshot, which must survive the restart.
        """
        if self.exists():
            return self.read()
        latest = await revisions.latest()
        if latest is not None:
            logger.info("Seeding program from revision v%d", latest.version)
            text = latest.code
        else:
            logger.info("Seeding program from bundled default")
            text = default_text
        self.write(text)
        return text
