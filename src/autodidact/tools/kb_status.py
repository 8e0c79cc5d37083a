"""kb_status MCP tool: knowledge, revision and cycle state."""

import json
from typing import Any

from fastmcp import FastMCP
from fastmcp.server.context import Context

from autodidact.acquire.scheduler import AcquisitionScheduler
from autodidact.improve.deployer import DeploymentController
from autodidact.store.knowledge_store import KnowledgeStore
from autodidact.store.revision_store import RevisionStore
from autodidact.tools.formatters import format_revision


async def collect_status(
    store: KnowledgeStore,
    revisions: RevisionStore,
    scheduler: AcquisitionScheduler | None = None,
    controller: DeploymentController | None = None,
) -> dict[str, Any]:
    """Gather the status payload; missing components are reported as None."""
    latest = await revisions.latest()
    return {
        "knowledge": await store.stats(),
        "latest_revision": format_revision(latest) if latest else None,
        "deploying": controller.busy if controller is not None else None,
        "cycles": scheduler.status() if scheduler is not None else None,
    }


def register_kb_status(mcp: FastMCP) -> None:
    """Register the kb_status tool with the MCP server."""

    @mcp.tool()
    async def kb_status(ctx: Context | None = None) -> str:
        """Report what has been learned, the running revision, and cycle health."""
        if ctx is None:
            raise RuntimeError("Context not injected")

        lifespan = ctx.lifespan_context
        status = await collect_status(
            lifespan["store"],
            lifespan["revisions"],
            lifespan.get("scheduler"),
            lifespan.get("controller"),
        )
        return json.dumps(status, indent=2, default=str)
