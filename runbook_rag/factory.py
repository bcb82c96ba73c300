"""
Service Factory

Builds the engine's components from settings and keeps one instance of
each per process. Provider names come from settings (LLM_PROVIDER,
EMBEDDING_PROVIDER, VECTOR_STORE_PROVIDER, STORAGE_PROVIDER).

"""

from functools import lru_cache
from typing import Optional

from runbook_rag.config.logging_config import get_logger
from runbook_rag.config.settings import settings
from runbook_rag.ingestion.embedder import get_embedder as _get_embedder
from runbook_rag.ingestion.service import RunbookIngestionService
from runbook_rag.ingestion.storage import get_storage as _get_storage
from runbook_rag.ingestion.vector_store import get_vector_store as _get_vector_store
from runbook_rag.llm import get_llm as _get_llm
from runbook_rag.services.enrichment import EnrichmentCollaborator
from runbook_rag.services.generation import ChecklistGenerator
from runbook_rag.services.pipeline import ChecklistPipeline
from runbook_rag.services.retrieval import RunbookRetriever

logger = get_logger("factory")


@lru_cache()
def get_vector_store():
    """Get or create vector store instance."""
    logger.info(f"Initializing vector store ({settings.VECTOR_STORE_PROVIDER})...")
    store = _get_vector_store(settings.VECTOR_STORE_PROVIDER)
    logger.info(f"Vector store loaded with {store.count()} chunks")
    return store


@lru_cache()
def get_embedder():
    """Get or create embedder instance."""
    logger.info(f"Initializing embedder ({settings.EMBEDDING_PROVIDER})...")
    return _get_embedder(settings.EMBEDDING_PROVIDER)


@lru_cache()
def get_llm():
    """Get or create LLM instance."""
    logger.info(f"Initializing LLM ({settings.LLM_PROVIDER})...")
    return _get_llm(settings.LLM_PROVIDER)


@lru_cache()
def get_storage():
    """Get or create runbook storage adapter."""
    return _get_storage(settings.STORAGE_PROVIDER)


@lru_cache()
def get_retriever() -> RunbookRetriever:
    """Get or create retriever instance."""
    return RunbookRetriever(vector_store=get_vector_store())


@lru_cache()
def get_ingestion_service() -> RunbookIngestionService:
    """Get or create ingestion service instance."""
    return RunbookIngestionService(
        storage=get_storage(),
        embedder=get_embedder(),
        vector_store=get_vector_store(),
    )


def build_pipeline(enrichment: Optional[EnrichmentCollaborator] = None) -> ChecklistPipeline:
    """
    Wire a pipeline from the shared components.

    Args:
        enrichment: Enrichment collaborator; alerts pass through unenriched when omitted
    """
    return ChecklistPipeline(
        embedder=get_embedder(),
        retriever=get_retriever(),
        generator=ChecklistGenerator(get_llm()),
        enrichment=enrichment,
    )


def reset_services() -> None:
    """Drop cached instances (tests, settings reloads)."""
    for getter in (
        get_vector_store,
        get_embedder,
        get_llm,
        get_storage,
        get_retriever,
        get_ingestion_service,
    ):
        getter.cache_clear()
