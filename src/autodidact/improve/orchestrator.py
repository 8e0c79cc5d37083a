"""One self-improvement cycle: analyze, generate, deploy."""

import logging
from dataclasses import dataclass

from autodidact.improve.analyzer import PerformanceAnalyzer
from autodidact.improve.codegen import CodeGenerator
from autodidact.improve.deployer import DeploymentController, DeploymentResult

logger = logging.getLogger(__name__)


@dataclass
class GoalOutcome:
    """What happened to one improvement goal: improved, failed, skipped, or error."""

    goal: str
    status: str
    result: DeploymentResult | None = None
    reason: str | None = None


class SelfImprovementOrchestrator:
    """Drives PerformanceAnalyzer -> CodeGenerator -> DeploymentController."""

    def __init__(
        self,
        analyzer: PerformanceAnalyzer,
        generator: CodeGenerator | None,
        controller: DeploymentController,
    ) -> None:
        """Initialize with the pipeline stages; a None generator disables generation."""
        self.analyzer = analyzer
        self.generator = generator
        self.controller = controller

    async def run(self) -> list[GoalOutcome]:
        """Attempt one deployment per goal; goals succeed or fail independently."""
        logger.info("Starting self-improvement process")
        goals = await self.analyzer.analyze()
        if not goals:
            logger.info("No improvements needed at this time")
            return []

        outcomes: list[GoalOutcome] = []
        for goal in goals:
            outcomes.append(await self._improve(goal))
        return outcomes

    async def _improve(self, goal: str) -> GoalOutcome:
        logger.info("Generating code to improve: %s", goal)
        if self.generator is None:
            return GoalOutcome(goal, "skipped", reason="no code generator configured")

        try:
            current = self.controller.artifact.read() if self.controller.artifact.exists() else ""
            candidate = await self.generator.generate(goal, current)
            if not candidate:
                logger.warning("Failed to generate new code for %s", goal)
                return GoalOutcome(goal, "skipped", reason="no candidate produced")

            result = await self.controller.deploy(
                candidate, f"Self-improvement update: {goal}", goal=goal
            )
        except Exception as exc:
            logger.error("Self-improvement for %s aborted", goal, exc_info=True)
            return GoalOutcome(goal, "error", reason=str(exc))

        if result.success:
            logger.info("Successfully improved: %s (v%s)", goal, result.version)
            return GoalOutcome(goal, "improved", result=result)
        logger.warning("Failed to apply update for %s at %s: %s", goal, result.stage, result.reason)
        return GoalOutcome(goal, "failed", result=result, reason=result.reason)
