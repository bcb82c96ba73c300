"""
Ollama LLM Module

Text generation against a local Ollama server (/api/generate, non-streaming).
"""

import time
from typing import Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from runbook_rag.config.logging_config import get_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import GenerationConfig

logger = get_logger("llm")


class OllamaLLM:
    """
    Ollama text generation.

    Usage:
        llm = OllamaLLM(base_url="http://localhost:11434", model_name="llama3.2")
        text = await llm.generate_text(prompt)
    """

    provider_id = "ollama"

    def __init__(
        self,
        base_url: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.model_name = model_name or settings.OLLAMA_TEXT_MODEL
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Create the HTTP client lazily."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post_generate(self, payload: dict) -> dict:
        response = await self._get_client().post("/api/generate", json=payload)
        response.raise_for_status()
        return response.json()

    async def generate_text(self, prompt: str, config: Optional[GenerationConfig] = None) -> str:
        config = config or GenerationConfig.from_settings()
        payload = {
            "model": config.model_override or self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": config.temperature,
                "num_predict": config.max_tokens,
            },
        }

        start_time = time.time()
        body = await self._post_generate(payload)
        latency_ms = int((time.time() - start_time) * 1000)

        text = body.get("response") or ""
        logger.info(f"Ollama {payload['model']} responded in {latency_ms}ms ({len(text)} chars)")
        return text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
