"""Code generation through a local Ollama server."""

import logging

import httpx

from autodidact.config import (
    get_codegen_max_tokens,
    get_codegen_temperature,
    get_llm_timeout,
    get_ollama_model,
    get_ollama_num_ctx,
    get_ollama_probe_timeout,
    get_ollama_url,
)

logger = logging.getLogger(__name__)


class OllamaLLMClient:
    """Asks an Ollama model for whole replacement programs via /api/generate.

    The request sizes the context window to fit the current program and
    caps output at the configured token ceiling. A reply that stopped at
    that ceiling is a truncated program and is discarded.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        """Initialize with an optional HTTP client."""
        self._http = http_client
        self._available: bool | None = None

    async def is_available(self) -> bool:
        """Check the server answers /api/tags. Only success is cached."""
        if self._available is True:
            return True
        try:
            resp = await self._get_client().get(
                f"{get_ollama_url()}/api/tags", timeout=get_ollama_probe_timeout()
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Ollama not reachable at %s: %s", get_ollama_url(), exc)
            self._available = None
            return False
        self._available = True
        return True

    async def generate(self, prompt: str, *, system: str | None = None) -> str | None:
        """Return the model's completion, or None when nothing usable came back."""
        if not await self.is_available():
            return None
        model = get_ollama_model()
        payload: dict[str, object] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": get_codegen_temperature(),
                "num_ctx": get_ollama_num_ctx(),
                "num_predict": get_codegen_max_tokens(),
            },
        }
        if system is not None:
            payload["system"] = system
        try:
            resp = await self._get_client().post(
                f"{get_ollama_url()}/api/generate", json=payload, timeout=get_llm_timeout()
            )
            if resp.status_code == 404:
                logger.error("Ollama model %s is not pulled", model)
                return None
            resp.raise_for_status()
            data = resp.json()
            text: str = data["response"]
        except (httpx.HTTPError, KeyError, ValueError):
            logger.warning("Ollama generation failed", exc_info=True)
            self._available = None
            return None

        if data.get("done_reason") == "length":
            logger.warning(
                "Ollama reply hit the %d token ceiling, discarding", get_codegen_max_tokens()
            )
            return None
        return text

    def _get_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def close(self) -> None:
        """Close the HTTP client if open."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
