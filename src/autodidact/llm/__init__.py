"""LLM backends for code generation."""

from autodidact.llm.ollama import OllamaLLMClient
from autodidact.llm.provider import LLMProvider

try:
    from autodidact.llm.anthropic import AnthropicLLMClient
except ImportError:
    AnthropicLLMClient = None  # type: ignore[assignment,misc]

__all__ = ["AnthropicLLMClient", "LLMProvider", "OllamaLLMClient"]
