"""Candidate program generation behind a narrow goal -> program interface."""

import logging
import re
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from autodidact.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:python|py)?[ \t]*\n(.*?)```", re.DOTALL)

_SYSTEM = (
    "You maintain the entry program of an autonomous knowledge-acquisition agent. "
    "Reply with one complete Python module in a single ```python fenced block "
    "and nothing else."
)


@runtime_checkable
class CodeGenerator(Protocol):
    """Maps an improvement goal to a full candidate program text."""

    async def generate(self, goal: str, current_program: str) -> str | None:
        """Return a candidate program, or None if nothing was produced."""
        ...


def build_prompt(goal: str, current_program: str, required_markers: Sequence[str]) -> str:
    """Prompt asking for a rewrite of the running program toward one goal."""
    markers = "\n".join(f"- {marker}" for marker in required_markers)
    return (
        f"Users recently asked about '{goal}' and the agent could not answer.\n"
        "Rewrite the program below so the agent gets better at this topic, for "
        "example by adding core topics or sources.\n\n"
        "Constraints:\n"
        "- Keep the `if __name__ == \"__main__\":` guard and the AD_SANDBOX_TEST "
        "self-check path, which must exit 0 without serving.\n"
        f"- The program must still contain each of these identifiers:\n{markers}\n\n"
        f"Current program:\n```python\n{current_program}\n```\n"
    )


def extract_program(reply: str) -> str | None:
    """Pull the program out of a model reply: first fenced block, else the whole reply."""
    match = _FENCE.search(reply)
    program = match.group(1) if match else reply
    program = program.strip()
    return program + "\n" if program else None


class LLMCodeGenerator:
    """Generates candidates by asking an LLM to revise the running program."""

    def __init__(self, llm: LLMProvider, required_markers: Sequence[str]) -> None:
        """Initialize with an LLM backend and the markers candidates must keep."""
        self._llm = llm
        self._markers = tuple(required_markers)

    async def generate(self, goal: str, current_program: str) -> str | None:
        """Ask the LLM for a candidate targeting ``goal``."""
        logger.info("Generating code for improvement: %s", goal)
        reply = await self._llm.generate(
            build_prompt(goal, current_program, self._markers), system=_SYSTEM
        )
        if not reply:
            logger.warning("No code generated for %s", goal)
            return None
        return extract_program(reply)
