"""
Configuration settings for the Runbook RAG engine
This module uses Pydantic Settings for type-safe configuration management.
Settings can be overridden via environment variables or .env file.

"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
        Application settings with environment variable support.

        All settings can be overridden by setting environment variables
        with the same name (case-insensitive).

        Example:
            export LLM_PROVIDER="ollama"
            export OLLAMA_BASE_URL="http://ollama.internal:11434"
    """

    model_config = SettingsConfigDict(
            env_file=".env",
            env_file_encoding="utf-8",
            case_sensitive=False,
            extra="ignore"  # Ignore extra env vars
        )

    # ===================
    # Project Paths
    # ===================

    BASE_DIR: Path = Field(
            default=Path(__file__).parent.parent.parent,
            description="Project root directory",
    )

    RUNBOOK_DIR: Path = Field(
            default_factory=lambda: Path(__file__).parent.parent.parent / "runbooks",
            description="Directory that relative runbook sources resolve against",
    )

    VECTORSTORE_DIR: Path = Field(
            default_factory=lambda: Path(__file__).parent.parent.parent / "vectorstore",
            description="ChromaDB persistent storage directory",
    )

    # ===================
    # Provider Selection
    # ===================

    LLM_PROVIDER: str = Field(
            default="mock",
            description="Text generation provider: mock, ollama or gemini"
        )

    EMBEDDING_PROVIDER: str = Field(
            default="mock",
            description="Embedding provider: mock, ollama or vertex"
        )

    VECTOR_STORE_PROVIDER: str = Field(
            default="memory",
            description="Vector store backend: memory or chroma"
        )

    STORAGE_PROVIDER: str = Field(
            default="local",
            description="Runbook document storage: local"
        )

    # ===================
    # Ollama
    # ===================

    OLLAMA_BASE_URL: str = Field(
            default="http://localhost:11434",
            description="Base URL of the Ollama server"
        )

    OLLAMA_TEXT_MODEL: str = Field(
            default="llama3.2",
            description="Ollama model used for checklist generation"
        )

    OLLAMA_EMBEDDING_MODEL: str = Field(
            default="nomic-embed-text",
            description="Ollama model used for embeddings"
        )

    # ===================
    # Google Cloud / Vertex AI
    # ===================

    GCP_PROJECT_ID: str = Field(
            default="runbook-rag-poc",
            description="Google Cloud Project ID"
        )

    GCP_LOCATION: str = Field(
            default="us-central1",
            description="Google Cloud region for Vertex AI"
        )

    EMBEDDING_MODEL: str = Field(
            default="text-embedding-004",
            description="Vertex AI embedding model name"
        )

    EMBEDDING_DIMENSION: int = Field(
            default=768,
            description="Embedding vector dimension"
        )

    LLM_MODEL: str = Field(
            default="gemini-1.5-pro",
            description="Gemini model for checklist generation"
        )

    # ===================
    # Generation
    # ===================

    LLM_TEMPERATURE: float = Field(
            default=0.7,
            ge=0.0,
            le=1.0,
            description="Default sampling temperature"
        )

    LLM_MAX_TOKENS: int = Field(
            default=1000,
            gt=0,
            description="Default maximum output tokens"
        )

    MAX_CONTEXT_CHARS: int = Field(
            default=12000,
            description="Character budget for runbook content placed in a prompt"
        )

    # ===================
    # ChromaDB Settings
    # ===================

    CHROMA_COLLECTION_NAME: str = Field(
            default="runbook_chunks",
            description="ChromaDB collection name for runbook chunks"
        )

    # ===================
    # Chunking Parameters
    # ===================

    MIN_CHUNK_CHARS: int = Field(
            default=100,
            description="Sections shorter than this merge into a neighbour"
        )

    MAX_CHUNK_CHARS: int = Field(
            default=2000,
            description="Sections longer than this split at paragraph boundaries"
        )

    # ===================
    # Retrieval Settings
    # ===================

    DEFAULT_TOP_K: int = Field(
            default=5,
            description="Default number of chunks to retrieve"
        )

    TAG_BOOST_WEIGHT: float = Field(
            default=0.1,
            description="Boost per chunk tag found in the alert"
        )

    SHAPE_BOOST_WEIGHT: float = Field(
            default=0.2,
            description="Boost when a chunk pattern matches the resource shape"
        )

    METADATA_BOOST_CAP: float = Field(
            default=0.3,
            description="Upper bound on the total metadata boost of a chunk"
        )

    # ===================
    # Runtime
    # ===================

    PIPELINE_TIMEOUT_SECONDS: float = Field(
            default=5.0,
            description="End-to-end deadline for one checklist request"
        )

    PROVIDER_TIMEOUT_SECONDS: float = Field(
            default=30.0,
            description="Per-request HTTP timeout for provider calls"
        )

    INGESTION_CONCURRENCY: int = Field(
            default=4,
            description="Documents ingested concurrently"
        )

    ENRICHMENT_LOOKBACK_MINUTES: int = Field(
            default=15,
            description="Window for recent metrics and logs during enrichment"
        )

    LOG_LEVEL: str = Field(
            default="INFO",
            description="Default log level for package loggers"
        )


# Singleton instance - import this in other modules
settings = Settings()

# ===================
# Design Decision Notes
# ===================
"""

MIN_CHUNK_CHARS = 100 / MAX_CHUNK_CHARS = 2000:
- A runbook section is usually one diagnostic step plus a command block
- Under 100 characters a section is a heading stub with no retrievable meaning
- 2000 characters keeps several chunks inside a small model's context window

METADATA_BOOST_CAP = 0.3:
- Cosine scores of related text sit in a narrow band (0.6-0.9)
- A larger boost would let tag overlap outrank clearly better semantic matches
- Shape match (0.2) plus one tag (0.1) exactly reaches the cap

PIPELINE_TIMEOUT_SECONDS = 5.0:
- Checklists are attached to alert notifications, which are not held back
  longer than a few seconds
- Providers that cannot answer in time surface as a failure, not a stall

"""
