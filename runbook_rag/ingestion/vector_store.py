"""
Vector Store Module

Stores embedded runbook chunks and answers similarity queries.

Backends:
- memory: in-process brute-force cosine scan (reference implementation)
- chroma: persistent ChromaDB collection in cosine space

Interview Discussion Points:
---------------------------
1. Why a linear scan for the reference store?
   - Runbook corpora are small (hundreds to a few thousand sections)
   - Exact results make ranking behaviour easy to test
   - The Chroma backend shows the same interface over an ANN index

2. Concurrency:
   - All operations are synchronous and guarded by one lock
   - Async callers go through the a* wrappers, which run on a worker thread
   - Each store() is atomically visible; a search racing a store_batch()
     may observe part of the batch

3. Re-indexing:
   - delete(source_path) followed by store_batch() replaces a document
   - The pair is not atomic; a concurrent search may briefly miss it
"""

import asyncio
import math
import threading
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from runbook_rag.config.logging_config import get_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import Chunk, ScoredChunk
from runbook_rag.exceptions import ValidationFailure
from runbook_rag.ingestion.embedder import cosine_similarity

logger = get_logger("vector_store")


@runtime_checkable
class VectorStore(Protocol):
    """Protocol for chunk vector stores."""

    def store(self, chunk: Chunk) -> None: ...

    def store_batch(self, chunks: list[Chunk]) -> int: ...

    def search(self, query_vector: list[float], top_k: int) -> list[ScoredChunk]: ...

    def delete(self, source_path: str) -> int: ...

    def count(self) -> int: ...

    async def astore_batch(self, chunks: list[Chunk]) -> int: ...

    async def asearch(self, query_vector: list[float], top_k: int) -> list[ScoredChunk]: ...

    async def adelete(self, source_path: str) -> int: ...


def _validate_top_k(top_k: int) -> None:
    if top_k is None or top_k <= 0:
        raise ValidationFailure(f"top_k must be positive, got {top_k}")


class AsyncStoreMixin:
    """Async wrappers that run the synchronous store operations off the event loop."""

    async def astore_batch(self, chunks: list[Chunk]) -> int:
        return await asyncio.to_thread(self.store_batch, chunks)

    async def asearch(self, query_vector: list[float], top_k: int) -> list[ScoredChunk]:
        _validate_top_k(top_k)
        return await asyncio.to_thread(self.search, query_vector, top_k)

    async def adelete(self, source_path: str) -> int:
        return await asyncio.to_thread(self.delete, source_path)


# =============================================================================
# In-Memory Vector Store
# =============================================================================

class InMemoryVectorStore(AsyncStoreMixin):
    """
    Thread-safe in-memory vector store.

    Chunks are kept in insertion order, which is also the tie-break order
    for equal similarity scores. The embedding dimension is fixed by the
    first stored chunk.

    Usage:
        store = InMemoryVectorStore()
        store.store_batch(chunks)
        results = store.search(query_vector, top_k=5)
    """

    def __init__(self):
        self._chunks: dict[str, Chunk] = {}
        self._lock = threading.Lock()
        self._dimension: Optional[int] = None

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def _check_dimension(self, size: int, what: str) -> None:
        if self._dimension is not None and size != self._dimension:
            raise ValidationFailure(
                f"{what} dimension {size} does not match store dimension {self._dimension}"
            )

    def _put(self, chunk: Chunk) -> None:
        self._check_dimension(chunk.dimension, f"chunk {chunk.id}")
        if self._dimension is None:
            self._dimension = chunk.dimension
        # Re-storing an id moves it to the end of the insertion order
        self._chunks.pop(chunk.id, None)
        self._chunks[chunk.id] = chunk

    def store(self, chunk: Chunk) -> None:
        with self._lock:
            self._put(chunk)

    def _check_batch(self, chunks: list[Chunk]) -> None:
        expected = self._dimension if self._dimension is not None else chunks[0].dimension
        for chunk in chunks:
            if chunk.dimension != expected:
                raise ValidationFailure(
                    f"chunk {chunk.id} dimension {chunk.dimension} does not match "
                    f"batch dimension {expected}; nothing stored"
                )

    def store_batch(self, chunks: list[Chunk]) -> int:
        """
        Store each chunk in order; each one becomes visible as it is added.

        The whole batch is dimension-checked first, so a bad vector stores nothing.
        """
        chunks = list(chunks)
        if not chunks:
            return 0
        with self._lock:
            self._check_batch(chunks)
        for chunk in chunks:
            self.store(chunk)
        logger.debug(f"Stored {len(chunks)} chunks (total {len(self._chunks)})")
        return len(chunks)

    def search(self, query_vector: list[float], top_k: int) -> list[ScoredChunk]:
        _validate_top_k(top_k)

        with self._lock:
            if not self._chunks:
                return []
            self._check_dimension(len(query_vector), "query vector")
            candidates = list(self._chunks.values())

        scored = [
            ScoredChunk(chunk=chunk, similarity=cosine_similarity(query_vector, chunk.embedding))
            for chunk in candidates
        ]

        # Stable sort keeps insertion order for equal scores
        scored.sort(key=lambda s: s.similarity, reverse=True)
        return scored[:top_k]

    def delete(self, source_path: str) -> int:
        with self._lock:
            doomed = [cid for cid, c in self._chunks.items() if c.source_path == source_path]
            for cid in doomed:
                del self._chunks[cid]
            if not self._chunks:
                self._dimension = None
        if doomed:
            logger.debug(f"Deleted {len(doomed)} chunks for {source_path}")
        return len(doomed)

    def count(self) -> int:
        with self._lock:
            return len(self._chunks)

    def get_stats(self) -> dict:
        with self._lock:
            sources = {c.source_path for c in self._chunks.values()}
            return {
                "backend": "memory",
                "total_chunks": len(self._chunks),
                "source_documents": len(sources),
                "dimension": self._dimension,
            }

    def clear(self) -> None:
        with self._lock:
            self._chunks.clear()
            self._dimension = None


# =============================================================================
# ChromaDB Vector Store
# =============================================================================

class ChromaVectorStore(AsyncStoreMixin):
    """
    ChromaDB-backed vector store for runbook chunks.

    ChromaDB metadata values must be scalars, so tag and pattern lists are
    stored as comma-joined strings.
    """

    def __init__(
        self,
        persist_dir: Optional[Path] = None,
        collection_name: Optional[str] = None,
        client=None,
    ):
        """
        Initialize the vector store.

        Args:
            persist_dir: Directory for persistent storage
            collection_name: Name of the ChromaDB collection
            client: Pre-built chromadb client (e.g. an EphemeralClient in tests)
        """
        import chromadb
        from chromadb.config import Settings as ChromaSettings

        self.persist_dir = Path(persist_dir or settings.VECTORSTORE_DIR)
        self.collection_name = collection_name or settings.CHROMA_COLLECTION_NAME
        self._lock = threading.Lock()

        if client is None:
            self.persist_dir.mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(
                path=str(self.persist_dir),
                settings=ChromaSettings(anonymized_telemetry=False, allow_reset=True),
            )
        self._client = client
        self._collection = None

    def _get_collection(self):
        """Get or create the collection lazily."""
        if self._collection is None:
            self._collection = self._client.get_or_create_collection(
                name=self.collection_name,
                metadata={
                    "description": "Runbook sections for alert troubleshooting",
                    "hnsw:space": "cosine",
                },
            )
        return self._collection

    @staticmethod
    def _chunk_to_metadata(chunk: Chunk) -> dict:
        return {
            "source_path": chunk.source_path,
            "section_title": chunk.section_title,
            "tags": ",".join(chunk.tags),
            "applicable_patterns": ",".join(chunk.applicable_patterns),
        }

    @staticmethod
    def _split(value: Optional[str]) -> tuple[str, ...]:
        if not value:
            return ()
        return tuple(v for v in value.split(",") if v)

    def store(self, chunk: Chunk) -> None:
        self.store_batch([chunk])

    def store_batch(self, chunks: list[Chunk]) -> int:
        if not chunks:
            return 0
        with self._lock:
            self._get_collection().upsert(
                ids=[c.id for c in chunks],
                embeddings=[list(c.embedding) for c in chunks],
                documents=[c.content for c in chunks],
                metadatas=[self._chunk_to_metadata(c) for c in chunks],
            )
        logger.debug(f"Upserted {len(chunks)} chunks into {self.collection_name}")
        return len(chunks)

    def search(self, query_vector: list[float], top_k: int) -> list[ScoredChunk]:
        _validate_top_k(top_k)

        with self._lock:
            collection = self._get_collection()
            total = collection.count()
            if total == 0:
                return []
            results = collection.query(
                query_embeddings=[list(query_vector)],
                n_results=min(top_k, total),
                include=["documents", "metadatas", "distances", "embeddings"],
            )

        retrieved = []
        if not results["ids"] or not results["ids"][0]:
            return retrieved

        for i, chunk_id in enumerate(results["ids"][0]):
            # For cosine distance: similarity = 1 - distance
            score = 1.0 - float(results["distances"][0][i])
            if math.isnan(score):
                score = 0.0
            metadata = results["metadatas"][0][i] or {}
            chunk = Chunk(
                id=chunk_id,
                source_path=metadata.get("source_path", ""),
                section_title=metadata.get("section_title", ""),
                content=results["documents"][0][i] or "",
                embedding=tuple(results["embeddings"][0][i]),
                tags=self._split(metadata.get("tags")),
                applicable_patterns=self._split(metadata.get("applicable_patterns")),
            )
            retrieved.append(ScoredChunk(chunk=chunk, similarity=score))

        return retrieved

    def delete(self, source_path: str) -> int:
        with self._lock:
            collection = self._get_collection()
            existing = collection.get(where={"source_path": source_path})
            ids = existing["ids"]
            if ids:
                collection.delete(ids=ids)
        return len(ids)

    def count(self) -> int:
        with self._lock:
            return self._get_collection().count()

    def get_stats(self) -> dict:
        return {
            "backend": "chroma",
            "collection_name": self.collection_name,
            "total_chunks": self.count(),
            "persist_dir": str(self.persist_dir),
        }

    def clear(self) -> None:
        """Clear all data from the collection."""
        with self._lock:
            collection = self._get_collection()
            all_data = collection.get()
            if all_data["ids"]:
                collection.delete(ids=all_data["ids"])


# =============================================================================
# Factory Function
# =============================================================================

VECTOR_STORES = {
    "memory": InMemoryVectorStore,
    "chroma": ChromaVectorStore,
}


def get_vector_store(provider: Optional[str] = None, **kwargs) -> VectorStore:
    """
    Factory function to get a vector store instance.

    Args:
        provider: "memory" or "chroma"; defaults to settings.VECTOR_STORE_PROVIDER
    """
    name = (provider or settings.VECTOR_STORE_PROVIDER).lower()
    if name not in VECTOR_STORES:
        raise ValidationFailure(
            f"unknown vector store {name!r}; expected one of {sorted(VECTOR_STORES)}"
        )
    return VECTOR_STORES[name](**kwargs)
