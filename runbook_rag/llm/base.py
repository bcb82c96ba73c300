"""
Text generation provider interface.
"""

from typing import Optional, Protocol, runtime_checkable

from runbook_rag.domain.models import GenerationConfig


@runtime_checkable
class LlmProvider(Protocol):
    """Protocol for text generation providers."""

    @property
    def provider_id(self) -> str:
        """Stable identifier recorded on every checklist ("ollama", "gemini")."""
        ...

    async def generate_text(self, prompt: str, config: Optional[GenerationConfig] = None) -> str:
        """Generate a completion for the prompt."""
        ...
