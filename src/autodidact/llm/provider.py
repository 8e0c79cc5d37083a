"""Interface the code generator uses to talk to a language model."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class LLMProvider(Protocol):
    """A text-completion backend that degrades to None instead of raising.

    Self-improvement treats a None reply as "no candidate this cycle", so
    implementations swallow transport and API errors and log them.
    """

    async def is_available(self) -> bool:
        """Whether a generate() call could currently succeed."""
        ...

    async def generate(self, prompt: str, *, system: str | None = None) -> str | None:
        """Complete ``prompt`` under an optional system prompt, or return None."""
        ...

    async def close(self) -> None:
        """Release HTTP or SDK clients."""
        ...
