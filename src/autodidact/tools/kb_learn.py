"""kb_learn MCP tool: fetch a topic now instead of waiting for a cycle."""

from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from autodidact.tools.formatters import format_fetch_report


def register_kb_learn(mcp: FastMCP) -> None:
    """Register the kb_learn tool with the MCP server."""

    @mcp.tool()
    async def kb_learn(
        topic: Annotated[
            str,
            Field(description="Topic name as used in URLs, e.g. 'Rust_(programming_language)'"),
        ],
        ctx: Context | None = None,
    ) -> str:
        """Fetch a topic from every knowledge source immediately."""
        if ctx is None:
            raise RuntimeError("Context not injected")

        topic = topic.strip()
        if not topic:
            return "Topic must not be empty."

        report = await ctx.lifespan_context["fetcher"].fetch_topic(topic)
        return format_fetch_report(report)
