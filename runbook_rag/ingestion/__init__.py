"""
Ingestion Module

Runbook chunking, embedding, storage and vector indexing.
"""

from runbook_rag.ingestion.chunker import RunbookChunker, chunk_document, generate_chunk_id
from runbook_rag.ingestion.embedder import (
    EmbeddingProvider,
    MockEmbedder,
    OllamaEmbedder,
    VertexAIEmbedder,
    cosine_similarity,
    get_embedder,
)
from runbook_rag.ingestion.service import RunbookIngestionService
from runbook_rag.ingestion.storage import LocalDirectoryStorage, StorageAdapter, get_storage
from runbook_rag.ingestion.vector_store import (
    ChromaVectorStore,
    InMemoryVectorStore,
    VectorStore,
    get_vector_store,
)

__all__ = [
    "RunbookChunker",
    "chunk_document",
    "generate_chunk_id",
    "EmbeddingProvider",
    "MockEmbedder",
    "OllamaEmbedder",
    "VertexAIEmbedder",
    "cosine_similarity",
    "get_embedder",
    "RunbookIngestionService",
    "LocalDirectoryStorage",
    "StorageAdapter",
    "get_storage",
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "VectorStore",
    "get_vector_store",
]
