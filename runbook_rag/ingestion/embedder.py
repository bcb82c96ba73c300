"""
Embedding Providers

Turns runbook sections and alert queries into fixed-length vectors.

Providers:
- mock:   deterministic hash-seeded vectors (tests, offline development)
- ollama: local Ollama server, /api/embed batch endpoint
- vertex: Vertex AI text-embedding models

Why this architecture?:
---------------------------
1. One small async Protocol:
   - The pipeline only needs embed(), embed_batch() and dimension
   - Swapping a provider is a settings change, callers never branch on it

2. Batching strategy:
   - Ingestion embeds a whole document in one embed_batch() call
   - Vertex AI caps a request at 250 texts, so larger batches are split

3. Error handling:
   - Transport errors are retried with exponential backoff (tenacity)
   - HTTP error responses surface immediately; the caller decides what fails
"""

import hashlib
import math
import random
from typing import Optional, Protocol, runtime_checkable

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from runbook_rag.config.logging_config import get_logger
from runbook_rag.config.settings import settings
from runbook_rag.exceptions import ValidationFailure

logger = get_logger("embedding")


# =============================================================================
# Embedder Protocol
# =============================================================================

@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""

    @property
    def dimension(self) -> int:
        """Length of every vector this provider returns."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts; output order matches input order."""
        ...


# =============================================================================
# Mock Embedder
# =============================================================================

class MockEmbedder:
    """
    Mock embedder for testing without a model server.

    Generates deterministic embeddings based on text content, so the same
    text always maps to the same unit vector.
    """

    def __init__(self, dimension: Optional[int] = None):
        self._dimension = dimension or settings.EMBEDDING_DIMENSION
        self.calls = 0

    @property
    def dimension(self) -> int:
        return self._dimension

    def _text_to_embedding(self, text: str) -> list[float]:
        """Generate deterministic embedding from text hash."""
        text_hash = int(hashlib.sha256(text.encode()).hexdigest()[:8], 16)
        rng = random.Random(text_hash)

        embedding = [rng.gauss(0, 1) for _ in range(self._dimension)]

        # L2 normalize
        norm = sum(x**2 for x in embedding) ** 0.5
        return [x / norm for x in embedding]

    async def embed(self, text: str) -> list[float]:
        self.calls += 1
        return self._text_to_embedding(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        return [self._text_to_embedding(t) for t in texts]


# =============================================================================
# Ollama Embedder
# =============================================================================

class OllamaEmbedder:
    """
    Embedder backed by a local Ollama server.

    Usage:
        embedder = OllamaEmbedder(base_url="http://localhost:11434")
        vectors = await embedder.embed_batch(["disk full on /var", "oom killer"])
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        model_name: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.model_name = model_name or settings.OLLAMA_EMBEDDING_MODEL
        self._dimension = dimension or settings.EMBEDDING_DIMENSION
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self._client = client

    @property
    def dimension(self) -> int:
        return self._dimension

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
    async def _post_embed(self, texts: list[str]) -> list[list[float]]:
        response = await self._get_client().post(
            "/api/embed",
            json={"model": self.model_name, "input": texts},
        )
        response.raise_for_status()
        embeddings = response.json().get("embeddings") or []
        if len(embeddings) != len(texts):
            raise ValueError(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} inputs"
            )
        return embeddings

    async def embed(self, text: str) -> list[float]:
        return (await self._post_embed([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        logger.debug(f"Ollama embedding {len(texts)} texts with {self.model_name}")
        return await self._post_embed(list(texts))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# =============================================================================
# Vertex AI Embedder
# =============================================================================

class VertexAIEmbedder:
    """
    Embedder using Vertex AI text-embedding models.

    Handles:
    - Lazy initialization of the Vertex AI client
    - Batched embedding generation
    - Different task types for documents vs. queries
    """

    # Vertex AI batch limits
    MAX_BATCH_SIZE = 250

    # Task types for different use cases
    TASK_DOCUMENT = "RETRIEVAL_DOCUMENT"
    TASK_QUERY = "RETRIEVAL_QUERY"

    def __init__(
        self,
        project_id: Optional[str] = None,
        location: Optional[str] = None,
        model_name: Optional[str] = None,
        dimension: Optional[int] = None,
    ):
        self.project_id = project_id or settings.GCP_PROJECT_ID
        self.location = location or settings.GCP_LOCATION
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self._dimension = dimension or settings.EMBEDDING_DIMENSION

        self._model = None

    @property
    def dimension(self) -> int:
        return self._dimension

    def _ensure_initialized(self):
        """Initialize Vertex AI client lazily."""
        if self._model is None:
            import vertexai
            from vertexai.language_models import TextEmbeddingModel

            logger.info(f"Initializing Vertex AI embeddings ({self.project_id}, {self.location})")
            vertexai.init(project=self.project_id, location=self.location)
            self._model = TextEmbeddingModel.from_pretrained(self.model_name)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def _embed_batch_with_retry(self, texts: list[str], task_type: str) -> list[list[float]]:
        from vertexai.language_models import TextEmbeddingInput

        inputs = [TextEmbeddingInput(text=text, task_type=task_type) for text in texts]
        embeddings = await self._model.get_embeddings_async(inputs)
        return [list(emb.values) for emb in embeddings]

    async def embed(self, text: str) -> list[float]:
        self._ensure_initialized()
        return (await self._embed_batch_with_retry([text], self.TASK_QUERY))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self._ensure_initialized()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.MAX_BATCH_SIZE):
            batch = texts[start:start + self.MAX_BATCH_SIZE]
            logger.debug(f"Vertex batch {start // self.MAX_BATCH_SIZE + 1} ({len(batch)} texts)")
            vectors.extend(await self._embed_batch_with_retry(batch, self.TASK_DOCUMENT))
        return vectors


# =============================================================================
# Utility Functions
# =============================================================================

EMBEDDERS = {
    "mock": MockEmbedder,
    "ollama": OllamaEmbedder,
    "vertex": VertexAIEmbedder,
}


def get_embedder(provider: Optional[str] = None, **kwargs) -> EmbeddingProvider:
    """
    Factory function to get an embedder by provider name.

    Args:
        provider: "mock", "ollama" or "vertex"; defaults to settings.EMBEDDING_PROVIDER
    """
    name = (provider or settings.EMBEDDING_PROVIDER).lower()
    if name not in EMBEDDERS:
        raise ValidationFailure(
            f"unknown embedding provider {name!r}; expected one of {sorted(EMBEDDERS)}"
        )
    return EMBEDDERS[name](**kwargs)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """
    Cosine similarity between two vectors.

    Returns 0.0 when either vector has zero magnitude.
    """
    if len(a) != len(b):
        raise ValidationFailure(f"dimension mismatch: {len(a)} != {len(b)}")

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    score = dot_product / (norm_a * norm_b)
    if math.isnan(score):
        return 0.0
    return score
