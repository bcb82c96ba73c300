"""
Gemini LLM Module

Wrapper for Google's Gemini models via Vertex AI, plus a canned mock used
for tests and offline development.

Why this architecture?:
---------------------------
1. Why Gemini?
   - Long context window fits many runbook sections per prompt
   - Good at following a fixed output layout (numbered steps, fenced commands)

2. Temperature settings:
   - Defaults come from GenerationConfig (settings.LLM_TEMPERATURE)
   - A per-call config may override temperature, max tokens and the model
"""

import time
from typing import Optional

from runbook_rag.config.logging_config import get_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import GenerationConfig

logger = get_logger("llm")


class GeminiLLM:
    """
    Gemini text generation through Vertex AI.

    Usage:
        llm = GeminiLLM()
        text = await llm.generate_text(prompt, GenerationConfig(temperature=0.2))
    """

    provider_id = "gemini"

    def __init__(
        self,
        project_id: Optional[str] = None,
        location: Optional[str] = None,
        model_name: Optional[str] = None,
    ):
        self.project_id = project_id or settings.GCP_PROJECT_ID
        self.location = location or settings.GCP_LOCATION
        self.model_name = model_name or settings.LLM_MODEL

        self._initialized = False
        self._models: dict = {}

    def _ensure_initialized(self):
        """Initialize Vertex AI lazily."""
        if not self._initialized:
            import vertexai

            logger.info(f"Initializing Vertex AI ({self.project_id}, {self.location})")
            vertexai.init(project=self.project_id, location=self.location)
            self._initialized = True

    def _get_model(self, model_name: str):
        from vertexai.generative_models import GenerativeModel

        if model_name not in self._models:
            self._models[model_name] = GenerativeModel(model_name)
        return self._models[model_name]

    async def generate_text(self, prompt: str, config: Optional[GenerationConfig] = None) -> str:
        from vertexai.generative_models import GenerationConfig as VertexGenerationConfig

        self._ensure_initialized()
        config = config or GenerationConfig.from_settings()
        model_name = config.model_override or self.model_name

        gen_config = VertexGenerationConfig(
            temperature=config.temperature,
            max_output_tokens=config.max_tokens,
        )

        start_time = time.time()
        response = await self._get_model(model_name).generate_content_async(
            prompt,
            generation_config=gen_config,
        )
        latency_ms = int((time.time() - start_time) * 1000)

        content = ""
        try:
            content = response.text or ""
        except ValueError:
            # Multi-part or blocked candidates; concatenate whatever text parts exist
            if response.candidates:
                parts = response.candidates[0].content.parts
                content = "".join(part.text for part in parts if hasattr(part, "text"))

        logger.info(f"Gemini {model_name} responded in {latency_ms}ms ({len(content)} chars)")
        return content


class MockLLM:
    """
    Mock LLM for testing without credentials.

    Returns a fixed, well-formed checklist unless a response is supplied.
    Every prompt is recorded on ``prompts``.
    """

    provider_id = "mock"

    DEFAULT_RESPONSE = """Summary: Resource is under pressure; confirm the symptom and find the consumer.

1. Confirm the alert against live resource usage [HIGH]
   Rationale: Rules out a stale or flapping alarm before taking action.
   Current: See alert message
   Expected: Usage below the alarm threshold
   ```
   uptime
   free -h
   ```
2. Identify the top consuming processes
   Rationale: Narrows the problem to a single workload.
   ```
   ps aux --sort=-%mem | head -n 10
   ```
3. Review recent deployments and configuration changes [LOW]
   Rationale: Most regressions follow a change.
"""

    def __init__(self, response: Optional[str] = None, **kwargs):
        self.response = self.DEFAULT_RESPONSE if response is None else response
        self.prompts: list[str] = []
        self.configs: list[GenerationConfig] = []

    async def generate_text(self, prompt: str, config: Optional[GenerationConfig] = None) -> str:
        self.prompts.append(prompt)
        self.configs.append(config or GenerationConfig.from_settings())
        return self.response
