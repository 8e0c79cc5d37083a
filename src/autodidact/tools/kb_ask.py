"""kb_ask MCP tool: answer a query from learned knowledge."""

import logging
import re
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from autodidact.acquire.discovery import STOPWORDS
from autodidact.models.entry import KnowledgeEntry
from autodidact.safety import is_content_safe
from autodidact.store.knowledge_store import KnowledgeStore
from autodidact.store.query_log import QueryLog
from autodidact.tools.formatters import format_entry, format_result_list

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"[A-Za-z0-9_.+#-]+")


def extract_keywords(query: str) -> list[str]:
    """Lowercased query tokens minus stopwords, in first-seen order."""
    tokens = (token.strip(".-").lower() for token in _TOKEN.findall(query))
    keywords = [t for t in tokens if len(t) > 1 and t not in STOPWORDS]
    return list(dict.fromkeys(keywords))


async def answer_query(
    store: KnowledgeStore, query_log: QueryLog, query: str, limit: int = 5
) -> list[KnowledgeEntry]:
    """Search, drop unsafe content, count the reads and log the query.

    The query is logged as failed when nothing safe matched; failed
    keywords feed the self-improvement goals.
    """
    keywords = extract_keywords(query)
    answers: list[KnowledgeEntry] = []
    if keywords:
        matches = await store.search(" ".join(keywords), limit=limit)
        answers = [entry for entry in matches if is_content_safe(entry.content)]

    if answers:
        await store.record_access([entry.id for entry in answers if entry.id is not None])
    await query_log.record(query, keywords, success=bool(answers))
    logger.debug("Query %r: %d answer(s)", query, len(answers))
    return answers


def register_kb_ask(mcp: FastMCP) -> None:
    """Register the kb_ask tool with the MCP server."""

    @mcp.tool()
    async def kb_ask(
        query: Annotated[str, Field(description="Question or keywords", min_length=1)],
        limit: Annotated[int, Field(description="Max entries", ge=1, le=20)] = 5,
        ctx: Context | None = None,
    ) -> str:
        """Look up learned knowledge about a technology topic.

        Unanswered queries are remembered and steer what the system
        learns and improves next.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        lifespan = ctx.lifespan_context
        answers = await answer_query(lifespan["store"], lifespan["query_log"], query, limit)
        if not answers:
            return "Nothing learned about that yet."
        return format_result_list([format_entry(entry) for entry in answers])
