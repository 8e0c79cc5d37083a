"""Recurring refresh, discovery and self-improvement cycles."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from autodidact.acquire.discovery import DiscoveryReport, TopicDiscovery
from autodidact.acquire.fetcher import FetchReport, SourceFetcher
from autodidact.config import (
    get_discover_interval,
    get_improve_interval,
    get_self_improve_interval,
    get_startup_delay,
)
from autodidact.improve.orchestrator import GoalOutcome, SelfImprovementOrchestrator
from autodidact.store.knowledge_store import KnowledgeStore

logger = logging.getLogger(__name__)

CORE_TOPICS: tuple[str, ...] = (
    "Artificial_intelligence",
    "Machine_learning",
    "Deep_learning",
    "Cybersecurity",
    "Blockchain",
    "Cloud_computing",
    "Web_development",
    "DevOps",
    "Data_science",
    "Internet_of_Things",
    "Augmented_reality",
    "JavaScript",
    "Python",
    "React",
    "Node.js",
    "MongoDB",
    "Express.js",
)

STALE_AFTER = timedelta(days=30)
REFRESH_LIMIT = 5

IMPROVE = "improve"
DISCOVER = "discover"
SELF_IMPROVE = "self_improve"


@dataclass
class Cycle:
    """A named recurring job. Its lock keeps a second run from starting mid-run."""

    name: str
    interval: float
    run: Callable[[], Awaitable[object]]
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    runs: int = 0
    skipped: int = 0
    failures: int = 0
    last_run: datetime | None = None
    last_error: str | None = None


class AcquisitionScheduler:
    """Runs the improve, discover and self-improve cycles on fixed periods.

    Different cycles may overlap each other. A tick that finds its own cycle
    still running is skipped. Failures are logged and the cycle waits for its
    next tick; nothing a cycle raises stops the scheduler.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        fetcher: SourceFetcher,
        discovery: TopicDiscovery,
        orchestrator: SelfImprovementOrchestrator | None = None,
        *,
        core_topics: tuple[str, ...] | list[str] = CORE_TOPICS,
        improve_interval: float | None = None,
        discover_interval: float | None = None,
        self_improve_interval: float | None = None,
        startup_delay: float | None = None,
        stale_after: timedelta = STALE_AFTER,
        refresh_limit: int = REFRESH_LIMIT,
    ) -> None:
        """Initialize with the pipeline components; periods default from configuration."""
        self.store = store
        self.fetcher = fetcher
        self.discovery = discovery
        self.orchestrator = orchestrator
        self.core_topics = tuple(core_topics)
        self.stale_after = stale_after
        self.refresh_limit = refresh_limit
        self.startup_delay = startup_delay if startup_delay is not None else get_startup_delay()
        self.cycles: dict[str, Cycle] = {
            IMPROVE: Cycle(
                IMPROVE,
                improve_interval if improve_interval is not None else get_improve_interval(),
                self.run_improve_cycle,
            ),
            DISCOVER: Cycle(
                DISCOVER,
                discover_interval if discover_interval is not None else get_discover_interval(),
                self.run_discover_cycle,
            ),
            SELF_IMPROVE: Cycle(
                SELF_IMPROVE,
                (
                    self_improve_interval
                    if self_improve_interval is not None
                    else get_self_improve_interval()
                ),
                self.run_self_improve_cycle,
            ),
        }
        self._tasks: list[asyncio.Task[None]] = []
        self._runs: set[asyncio.Task[bool]] = set()

    # -- cycle bodies --

    async def run_improve_cycle(self) -> list[FetchReport]:
        """Refresh core topics, then stale entries, then the most accessed entries."""
        logger.info("Updating knowledge: %d core topics", len(self.core_topics))
        reports: list[FetchReport] = []
        refreshed: set[str] = set()

        for topic in self.core_topics:
            reports.append(await self.fetcher.fetch_topic(topic))
            refreshed.add(topic)

        cutoff = datetime.now(UTC) - self.stale_after
        for entry in await self.store.find_stale(cutoff, self.refresh_limit):
            if entry.topic in refreshed:
                continue
            logger.info("Refreshing outdated knowledge: %s", entry.topic)
            reports.append(await self.fetcher.fetch_topic(entry.topic))
            refreshed.add(entry.topic)

        for entry in await self.store.find_popular(self.refresh_limit):
            if entry.topic in refreshed:
                continue
            logger.info("Updating popular topic: %s", entry.topic)
            reports.append(await self.fetcher.fetch_topic(entry.topic))
            refreshed.add(entry.topic)

        return reports

    async def run_discover_cycle(self) -> DiscoveryReport:
        """Learn topics trending on the discovery sources."""
        return await self.discovery.discover_topics()

    async def run_self_improve_cycle(self) -> list[GoalOutcome]:
        """Run one self-improvement pass, if an orchestrator is configured."""
        if self.orchestrator is None:
            logger.info("Self-improvement disabled")
            return []
        return await self.orchestrator.run()

    # -- scheduling --

    async def trigger(self, name: str) -> bool:
        """Run a cycle now. Returns False if it was already running and this run was skipped."""
        cycle = self.cycles[name]
        if cycle.lock.locked():
            cycle.skipped += 1
            logger.warning("%s cycle still running, skipping this run", name)
            return False
        async with cycle.lock:
            cycle.runs += 1
            try:
                await cycle.run()
            except Exception as exc:
                cycle.failures += 1
                cycle.last_error = str(exc)
                logger.error("%s cycle failed, retrying next period", name, exc_info=True)
            else:
                cycle.last_error = None
            finally:
                cycle.last_run = datetime.now(UTC)
        return True

    def start(self) -> None:
        """Schedule every cycle; the first refresh runs after the startup delay."""
        if self._tasks:
            return
        logger.info("Initializing self-learning system")
        self._tasks.append(asyncio.create_task(self._delayed(IMPROVE, self.startup_delay)))
        for cycle in self.cycles.values():
            self._tasks.append(asyncio.create_task(self._every(cycle)))

    async def stop(self) -> None:
        """Cancel schedules and in-flight runs."""
        pending = [*self._tasks, *self._runs]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        self._runs.clear()

    def status(self) -> dict[str, dict[str, Any]]:
        """Per-cycle counters for the status surface."""
        return {
            name: {
                "running": cycle.lock.locked(),
                "interval": cycle.interval,
                "runs": cycle.runs,
                "skipped": cycle.skipped,
                "failures": cycle.failures,
                "last_run": cycle.last_run.isoformat() if cycle.last_run else None,
                "last_error": cycle.last_error,
            }
            for name, cycle in self.cycles.items()
        }

    async def _delayed(self, name: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._spawn(name)

    async def _every(self, cycle: Cycle) -> None:
        while True:
            await asyncio.sleep(cycle.interval)
            self._spawn(cycle.name)

    def _spawn(self, name: str) -> None:
        # Ticks fire on schedule regardless of the previous run; trigger() skips overlaps
        task = asyncio.create_task(self.trigger(name))
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
