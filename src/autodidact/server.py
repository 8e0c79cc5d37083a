"""FastMCP server factory and LLM backend selection."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from fastmcp import FastMCP

from autodidact.llm import AnthropicLLMClient
from autodidact.llm.ollama import OllamaLLMClient
from autodidact.llm.provider import LLMProvider
from autodidact.tools.kb_ask import register_kb_ask
from autodidact.tools.kb_learn import register_kb_learn
from autodidact.tools.kb_status import register_kb_status

Lifespan = Callable[[FastMCP], AbstractAsyncContextManager[dict[str, Any]]]


def create_llm(provider: str) -> LLMProvider | None:
    """Create an LLM client for the given provider name; None disables code generation."""
    if provider == "anthropic":
        if AnthropicLLMClient is not None:
            return AnthropicLLMClient()
        return None
    if provider == "ollama":
        return OllamaLLMClient()
    return None


_INSTRUCTIONS = """\
An autonomous knowledge base about software technologies. It teaches itself \
from public sources on a schedule and rewrites its own program to get better \
at what it is asked.

- kb_ask: Look up what has been learned about a topic. Questions it cannot \
answer are remembered and steer future learning.
- kb_learn: Fetch a topic from every source right now.
- kb_status: Entry counts, the running program revision, and cycle health.
"""


def create_server(lifespan: Lifespan | None = None) -> FastMCP:
    """Create the MCP server with all tools.

    ``lifespan`` must yield the component dict the tools read: ``store``,
    ``query_log``, ``revisions``, ``fetcher`` and optionally ``scheduler``
    and ``controller``.
    """
    mcp = FastMCP("autodidact", instructions=_INSTRUCTIONS, lifespan=lifespan)

    register_kb_ask(mcp)
    register_kb_learn(mcp)
    register_kb_status(mcp)

    return mcp
