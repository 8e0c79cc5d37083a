"""Build-test-swap-rollback pipeline for candidate programs."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from autodidact.errors import RestartFailure, TestFailure, ValidationFailure
from autodidact.improve.artifact import ProgramArtifact
from autodidact.improve.external import NullSourceControl, ProcessSupervisor, SourceControl
from autodidact.improve.sandbox import Sandbox
from autodidact.models.revision import BackupSnapshot
from autodidact.store.revision_store import RevisionStore

logger = logging.getLogger(__name__)

# Serving entry point, persistence connector, listen call, then the
# pipeline's own public entry points.
REQUIRED_MARKERS: tuple[str, ...] = (
    "create_server",
    "create_connection",
    ".run(",
    "SourceFetcher",
    "TopicDiscovery",
    "AcquisitionScheduler",
    "DeploymentController",
    "SelfImprovementOrchestrator",
)

DEFAULT_CHANGES = "Self-improvement update"


def validate_structure(code: str, markers: Sequence[str] = REQUIRED_MARKERS) -> None:
    """Raise ValidationFailure unless every marker occurs in the program text."""
    missing = [marker for marker in markers if marker not in code]
    if missing:
        raise ValidationFailure(
            f"missing required components: {', '.join(missing)}",
            detail={"missing": missing},
        )


@dataclass
class DeploymentResult:
    """Outcome of one deployment attempt.

    ``stage`` is where the attempt ended: validation, test, evaluation,
    restart, or deployed.
    """

    success: bool
    stage: str
    version: int | None = None
    backup: BackupSnapshot | None = None
    reason: str | None = None
    rolled_back: bool = False
    published: bool = False


class DeploymentController:
    """Validates, tests, versions, deploys and if needed rolls back a candidate.

    One attempt at a time: the whole state machine runs under a lock, so a
    commit never interleaves with another attempt's rollback.
    """

    def __init__(
        self,
        revisions: RevisionStore,
        artifact: ProgramArtifact,
        sandbox: Sandbox,
        supervisor: ProcessSupervisor,
        source_control: SourceControl | None = None,
        *,
        backup_dir: Path,
        required_markers: Sequence[str] = REQUIRED_MARKERS,
    ) -> None:
        """Initialize with the stores, gates and collaborators of a deployment."""
        self.revisions = revisions
        self.artifact = artifact
        self.sandbox = sandbox
        self.supervisor = supervisor
        self.source_control = source_control or NullSourceControl()
        self.backup_dir = backup_dir
        self.required_markers = tuple(required_markers)
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """Whether an attempt is in progress."""
        return self._lock.locked()

    async def deploy(
        self, code: str, changes: str = DEFAULT_CHANGES, *, goal: str | None = None
    ) -> DeploymentResult:
        """Run one deployment attempt end to end."""
        async with self._lock:
            return await self._attempt(code, changes, goal)

    async def _attempt(self, code: str, changes: str, goal: str | None) -> DeploymentResult:
        version = await self.revisions.next_version()

        try:
            validate_structure(code, self.required_markers)
        except ValidationFailure as exc:
            logger.error("Attempted code update rejected: %s", exc.message)
            return DeploymentResult(False, "validation", reason=exc.message)

        backup = self.artifact.backup(self.backup_dir)

        try:
            await self._test(code)
        except TestFailure as exc:
            logger.error("Invalid code update: %s", exc.message)
            stage = str(exc.detail.get("stage", "test"))
            return DeploymentResult(False, stage, backup=backup, reason=exc.message)

        performance: dict[str, object] = {"timestamp": backup.timestamp, "backup": str(backup.path)}
        if goal:
            performance["goal"] = goal
        await self.revisions.create(version, code, changes, performance)
        self.artifact.write(code)
        logger.info("Program updated to version %d, restarting", version)

        published = await self._publish(f"{changes} (v{version})")

        try:
            await self._restart()
        except RestartFailure as exc:
            logger.error("Restart after v%d failed, rolling back: %s", version, exc.message)
            await self._rollback(backup)
            return DeploymentResult(
                False,
                "restart",
                version=version,
                backup=backup,
                reason=exc.message,
                rolled_back=True,
                published=published,
            )

        return DeploymentResult(
            True, "deployed", version=version, backup=backup, published=published
        )

    async def _test(self, code: str) -> None:
        try:
            isolated = await self.sandbox.run_isolated(code)
        except OSError as exc:
            raise TestFailure(
                f"isolated run could not start: {exc}", detail={"stage": "test"}
            ) from exc
        if not isolated.ok:
            raise TestFailure(
                f"isolated run failed: {isolated.describe()}", detail={"stage": "test"}
            )
        logger.info("Candidate passed isolated run")

        try:
            restricted = await self.sandbox.evaluate_restricted(code)
        except OSError as exc:
            raise TestFailure(
                f"restricted evaluation could not start: {exc}", detail={"stage": "evaluation"}
            ) from exc
        if not restricted.ok:
            raise TestFailure(
                f"restricted evaluation failed: {restricted.describe()}",
                detail={"stage": "evaluation"},
            )

    async def _publish(self, message: str) -> bool:
        try:
            return await self.source_control.publish(self.artifact.path, message)
        except Exception:
            logger.warning("Publishing to source control failed", exc_info=True)
            return False

    async def _restart(self) -> None:
        try:
            ok = await self.supervisor.restart()
        except Exception as exc:
            raise RestartFailure(f"supervisor error: {exc}") from exc
        if not ok:
            raise RestartFailure("supervisor reported restart failure")

    async def _rollback(self, backup: BackupSnapshot) -> None:
        self.artifact.restore(backup)
        try:
            await self._restart()
        except RestartFailure as exc:
            # Second attempt is not retried; the restored program stays on disk
            logger.critical("Restart after rollback also failed: %s", exc.message)
