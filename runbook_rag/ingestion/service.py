"""
Runbook Ingestion Service

Lists runbooks from storage, chunks them, embeds each document in one batch
and replaces the document's chunks in the vector store.

Pipeline per document:
    fetch -> chunk -> embed_batch -> delete(path) -> store_batch

A failing document is logged and skipped; the run always finishes with the
count of chunks that were stored.
"""

import asyncio
import time
from typing import Optional

from runbook_rag.config.logging_config import get_ingestion_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import Chunk
from runbook_rag.exceptions import CollaboratorFailure
from runbook_rag.ingestion.chunker import RunbookChunker, generate_chunk_id
from runbook_rag.ingestion.embedder import EmbeddingProvider
from runbook_rag.ingestion.storage import StorageAdapter
from runbook_rag.ingestion.vector_store import VectorStore

logger = get_ingestion_logger()


class RunbookIngestionService:
    """
    Ingests runbook documents into the vector store.

    Usage:
        service = RunbookIngestionService(storage, embedder, store)
        total = await service.ingest_all("runbooks/")
    """

    def __init__(
        self,
        storage: StorageAdapter,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        chunker: Optional[RunbookChunker] = None,
        concurrency: Optional[int] = None,
    ):
        self.storage = storage
        self.embedder = embedder
        self.vector_store = vector_store
        self.chunker = chunker or RunbookChunker()
        self.concurrency = max(1, concurrency or settings.INGESTION_CONCURRENCY)

    async def ingest(self, source: str, name: str) -> int:
        """
        Ingest one document, replacing any chunks previously stored for it.

        Returns:
            Number of chunks stored. A missing document only removes its
            stale chunks and returns 0.

        Raises:
            Any storage, embedding or store error for this document.
        """
        content = await self.storage.get_document_content(source, name)
        if content is None:
            removed = await self.vector_store.adelete(name)
            logger.info(f"{name}: document missing, removed {removed} stale chunks")
            return 0

        drafts = self.chunker.chunk(content, name)
        if not drafts:
            removed = await self.vector_store.adelete(name)
            logger.info(f"{name}: no sections found, removed {removed} stale chunks")
            return 0

        vectors = await self.embedder.embed_batch([d.content for d in drafts])
        if len(vectors) != len(drafts):
            raise CollaboratorFailure(
                "embedding",
                f"{name}: got {len(vectors)} embeddings for {len(drafts)} chunks",
            )

        chunks = [
            Chunk(
                id=generate_chunk_id(name, index, draft.content),
                source_path=name,
                section_title=draft.section_title,
                content=draft.content,
                embedding=vector,
                tags=draft.tags,
                applicable_patterns=draft.applicable_patterns,
            )
            for index, (draft, vector) in enumerate(zip(drafts, vectors))
        ]

        # Not atomic: a concurrent search may briefly see no chunks for this path
        await self.vector_store.adelete(name)
        stored = await self.vector_store.astore_batch(chunks)
        logger.info(f"{name}: stored {stored} chunks")
        return stored

    async def ingest_all(self, source: str) -> int:
        """
        Ingest every document in the source.

        Returns:
            Total chunks stored across successful documents.

        Raises:
            CollaboratorFailure: if the documents cannot be listed.
        """
        start_time = time.time()
        try:
            names = await self.storage.list_documents(source)
        except Exception as e:
            logger.error(f"Could not list runbooks in {source}: {e}")
            raise CollaboratorFailure("storage", cause=e) from e

        logger.info(f"Ingesting {len(names)} runbooks from {source}")
        semaphore = asyncio.Semaphore(self.concurrency)

        async def ingest_one(name: str) -> int:
            async with semaphore:
                try:
                    return await self.ingest(source, name)
                except Exception as e:
                    logger.warning(f"Skipping {name}: {type(e).__name__}: {e}")
                    return 0

        counts = await asyncio.gather(*(ingest_one(name) for name in names))
        total = sum(counts)

        elapsed = time.time() - start_time
        logger.info(
            f"Ingestion complete: {total} chunks from "
            f"{sum(1 for c in counts if c)}/{len(names)} documents in {elapsed:.2f}s"
        )
        return total
