"""The running program: wires every component and serves the MCP tools.

This file is what self-improvement rewrites. ``python -m autodidact`` runs
the deployed copy at ``AD_PROGRAM_PATH``; this bundled version seeds it.
Candidates are executed twice before deployment: as ``__main__`` with
``AD_SANDBOX_TEST=1`` (the self-check below must exit 0 without serving)
and as a plain module with only allow-listed imports, so keep the imports
here to asyncio, logging, contextlib, collections, typing, aiosqlite,
fastmcp and autodidact.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite
from fastmcp import FastMCP

from autodidact.acquire.discovery import TopicDiscovery
from autodidact.acquire.fetcher import SourceFetcher
from autodidact.acquire.scheduler import AcquisitionScheduler
from autodidact.config import (
    get_backup_dir,
    get_codegen_provider,
    get_db_path,
    get_git_branch,
    get_git_remote,
    get_git_repo,
    get_host,
    get_log_level,
    get_port,
    get_program_path,
    get_restart_command,
    is_sandbox_test,
)
from autodidact.db.connection import create_connection
from autodidact.improve.analyzer import PerformanceAnalyzer
from autodidact.improve.artifact import ProgramArtifact, bundled_program_text
from autodidact.improve.codegen import LLMCodeGenerator
from autodidact.improve.deployer import REQUIRED_MARKERS, DeploymentController
from autodidact.improve.external import CommandSupervisor, GitSourceControl, NullSourceControl
from autodidact.improve.orchestrator import SelfImprovementOrchestrator
from autodidact.improve.sandbox import Sandbox
from autodidact.server import create_llm, create_server
from autodidact.store.knowledge_store import KnowledgeStore
from autodidact.store.query_log import QueryLog
from autodidact.store.revision_store import RevisionStore

logger = logging.getLogger(__name__)


def build_components(db: aiosqlite.Connection) -> dict[str, Any]:
    """Construct the pipeline around an open connection. Nothing is started."""
    store = KnowledgeStore(db)
    query_log = QueryLog(db)
    revisions = RevisionStore(db)

    fetcher = SourceFetcher(store)
    discovery = TopicDiscovery(store, fetcher)

    repo = get_git_repo()
    source_control = (
        GitSourceControl(repo, get_git_remote(), get_git_branch())
        if repo is not None
        else NullSourceControl()
    )
    artifact = ProgramArtifact(get_program_path())
    controller = DeploymentController(
        revisions,
        artifact,
        Sandbox(),
        CommandSupervisor(get_restart_command()),
        source_control,
        backup_dir=get_backup_dir(),
    )

    llm = create_llm(get_codegen_provider())
    generator = LLMCodeGenerator(llm, REQUIRED_MARKERS) if llm is not None else None
    orchestrator = SelfImprovementOrchestrator(
        PerformanceAnalyzer(query_log), generator, controller
    )

    scheduler = AcquisitionScheduler(store, fetcher, discovery, orchestrator)

    return {
        "db": db,
        "store": store,
        "query_log": query_log,
        "revisions": revisions,
        "fetcher": fetcher,
        "discovery": discovery,
        "artifact": artifact,
        "controller": controller,
        "orchestrator": orchestrator,
        "scheduler": scheduler,
        "llm": llm,
    }


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Open storage, materialize the program artifact and start the cycles."""
    # basicConfig writes to stderr by default
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    db_path = get_db_path()
    logger.info("Opening database at %s", db_path)
    db = await create_connection(db_path)
    components = build_components(db)

    await components["artifact"].initialize(components["revisions"], bundled_program_text())
    latest = await components["revisions"].latest()
    logger.info("Running program revision %s", f"v{latest.version}" if latest else "(bundled)")

    if components["llm"] is not None:
        logger.info("Code generation LLM: %s", get_codegen_provider())
    else:
        logger.warning(
            "Code generation LLM not available (%s), self-improvement will skip goals",
            get_codegen_provider(),
        )

    components["scheduler"].start()
    try:
        yield components
    finally:
        await components["scheduler"].stop()
        if components["llm"] is not None:
            await components["llm"].close()
        await db.close()
        logger.info("Database connection closed")


async def self_check() -> None:
    """Wire everything against a throwaway database, then tear it down."""
    db = await create_connection(":memory:")
    try:
        components = build_components(db)
        create_server(lifespan)
        await components["store"].stats()
        await components["revisions"].next_version()
        if components["llm"] is not None:
            await components["llm"].close()
    finally:
        await db.close()
    logger.info("Self-check passed")


def main() -> None:
    """Serve over HTTP, or only self-check when running inside the sandbox."""
    if is_sandbox_test():
        asyncio.run(self_check())
        return
    server = create_server(lifespan)
    server.run(transport="http", host=get_host(), port=get_port())


if __name__ == "__main__":
    main()
