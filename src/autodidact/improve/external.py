"""Source-control and process-supervisor collaborators."""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_COMMAND_TIMEOUT = 60.0


@runtime_checkable
class SourceControl(Protocol):
    """Publishes a deployed program file. Best effort: never raises."""

    async def publish(self, path: Path, message: str) -> bool:
        """Stage, commit and push ``path``. Returns False if any step failed."""
        ...


@runtime_checkable
class ProcessSupervisor(Protocol):
    """Restarts the running system."""

    async def restart(self) -> bool:
        """Restart everything. Returns False if the supervisor reported failure."""
        ...


async def run_command(
    argv: Sequence[str], *, cwd: Path | None = None, timeout: float = _COMMAND_TIMEOUT
) -> tuple[int, str]:
    """Run a command, returning (exit status, combined output). Timeouts report -1."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as exc:
        return -1, str(exc)
    try:
        output, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        proc.kill()
        await proc.wait()
        return -1, f"timed out after {timeout:g}s"
    except BaseException:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise
    return proc.returncode or 0, output.decode("utf-8", errors="replace").strip()


class GitSourceControl:
    """Commits deployed programs to a git checkout and pushes them."""

    def __init__(self, repo_dir: Path, remote: str = "origin", branch: str = "main") -> None:
        """Initialize with the checkout and push target."""
        self.repo_dir = repo_dir
        self.remote = remote
        self.branch = branch

    async def publish(self, path: Path, message: str) -> bool:
        """Stage, commit and push a file; failures are logged, not raised."""
        steps = (
            ["git", "add", str(path)],
            ["git", "commit", "-m", message],
            ["git", "push", self.remote, self.branch],
        )
        for argv in steps:
            status, output = await run_command(argv, cwd=self.repo_dir)
            if status != 0:
                logger.warning("%s failed (%d): %s", " ".join(argv[:2]), status, output)
                return False
        logger.info("Pushed %s to %s/%s", path.name, self.remote, self.branch)
        return True


class NullSourceControl:
    """Used when no repository is configured."""

    async def publish(self, path: Path, message: str) -> bool:
        """Skip publishing."""
        logger.debug("No repository configured, not publishing %s", path)
        return False


class CommandSupervisor:
    """Restarts the system by running a supervisor command, e.g. ``pm2 restart all``."""

    def __init__(self, command: Sequence[str], timeout: float = _COMMAND_TIMEOUT) -> None:
        """Initialize with the restart command."""
        self.command = list(command)
        self.timeout = timeout

    async def restart(self) -> bool:
        """Run the restart command; non-zero exit or timeout is failure."""
        if not self.command:
            logger.error("No restart command configured")
            return False
        status, output = await run_command(self.command, timeout=self.timeout)
        if status != 0:
            logger.error("Restart failed (%d): %s", status, output)
            return False
        return True
