"""
LLM Module

Text generation providers selected by name.
"""

from typing import Optional

from runbook_rag.config.settings import settings
from runbook_rag.exceptions import ValidationFailure
from runbook_rag.llm.base import LlmProvider
from runbook_rag.llm.gemini import GeminiLLM, MockLLM
from runbook_rag.llm.ollama import OllamaLLM

LLM_PROVIDERS = {
    "mock": MockLLM,
    "ollama": OllamaLLM,
    "gemini": GeminiLLM,
}


def get_llm(provider: Optional[str] = None, **kwargs) -> LlmProvider:
    """
    Factory function to get an LLM by provider name.

    Args:
        provider: "mock", "ollama" or "gemini"; defaults to settings.LLM_PROVIDER
    """
    name = (provider or settings.LLM_PROVIDER).lower()
    if name not in LLM_PROVIDERS:
        raise ValidationFailure(
            f"unknown LLM provider {name!r}; expected one of {sorted(LLM_PROVIDERS)}"
        )
    return LLM_PROVIDERS[name](**kwargs)


__all__ = ["LlmProvider", "GeminiLLM", "MockLLM", "OllamaLLM", "get_llm", "LLM_PROVIDERS"]
