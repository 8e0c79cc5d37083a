"""Code generation through the Anthropic Messages API."""

from __future__ import annotations

import logging
import os
from typing import Any

from autodidact.config import (
    get_anthropic_model,
    get_anthropic_timeout,
    get_codegen_max_tokens,
    get_codegen_temperature,
)

logger = logging.getLogger(__name__)


class AnthropicLLMClient:
    """Asks a Claude model for whole replacement programs.

    The SDK is an optional extra and is imported on first use. Replies
    that ran into the token ceiling are truncated programs and are
    discarded rather than handed to deployment.
    """

    def __init__(self) -> None:
        self._client: Any = None
        self._available: bool | None = None

    async def is_available(self) -> bool:
        """SDK importable and ANTHROPIC_API_KEY set; a successful reply is cached."""
        if self._available is True:
            return True
        try:
            if self._get_client() is None:
                return False
        except Exception:
            logger.warning("Anthropic client could not be created", exc_info=True)
            return False
        if not os.environ.get("ANTHROPIC_API_KEY"):
            logger.warning("ANTHROPIC_API_KEY not set, Anthropic code generation disabled")
            return False
        return True

    async def generate(self, prompt: str, *, system: str | None = None) -> str | None:
        """Return the reply text, or None on failure or truncation."""
        try:
            client = self._get_client()
            if client is None:
                return None

            kwargs: dict[str, Any] = {
                "model": get_anthropic_model(),
                "max_tokens": get_codegen_max_tokens(),
                "temperature": get_codegen_temperature(),
                "messages": [{"role": "user", "content": prompt}],
            }
            if system is not None:
                kwargs["system"] = system

            response = await client.messages.create(**kwargs, timeout=get_anthropic_timeout())
        except Exception:
            logger.warning("Anthropic generation failed", exc_info=True)
            self._available = None
            return None

        self._available = True
        if response.stop_reason == "max_tokens":
            logger.warning(
                "Anthropic reply hit the %d token ceiling, discarding", kwargs["max_tokens"]
            )
            return None
        return "".join(block.text for block in response.content if block.type == "text")

    def _get_client(self) -> Any:
        """Lazily create the AsyncAnthropic client. Returns None if the SDK is missing."""
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic

                self._client = AsyncAnthropic()
            except ImportError:
                logger.warning("anthropic package not installed, code generation disabled")
                return None
        return self._client

    async def close(self) -> None:
        """Close the Anthropic client if open."""
        if self._client is not None:
            await self._client.close()
            self._client = None
