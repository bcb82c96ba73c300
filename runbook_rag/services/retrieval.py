"""
Runbook Retrieval Service

Context-aware retrieval of runbook sections for an enriched alert:
- Vector similarity search with over-fetch (2 x top_k candidates), widened
  while shape exclusion leaves fewer than top_k
- Hard exclusion of sections written for other resource shapes
- Metadata boost for tag and shape matches, capped
- Re-ranking by final score

Interview Discussion Points:
---------------------------
1. Why over-fetch?
   - Shape exclusion can remove candidates after the vector search
   - Boosting can promote a candidate that was just outside top_k

2. Why exclude on shape instead of down-weighting?
   - GPU troubleshooting steps on a standard VM are actively misleading
   - A section that declares its shapes has told us where it does not apply

3. Why cap the boost?
   - Cosine scores of related text sit in a narrow band
   - An uncapped tag boost would let keyword overlap beat meaning
"""

import fnmatch
from typing import Optional

from runbook_rag.config.logging_config import get_retrieval_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import Chunk, EnrichedContext, ScoredChunk
from runbook_rag.exceptions import ValidationFailure
from runbook_rag.ingestion.vector_store import VectorStore

logger = get_retrieval_logger()

UNIVERSAL_PATTERNS = {"*", "all"}


def matches_pattern(pattern: str, shape: str) -> bool:
    """
    Case-insensitive shape match.

    "*" and "all" match every shape; other patterns are globs, so "VM.*"
    matches "VM.Standard2.1".
    """
    pattern = (pattern or "").strip().lower()
    if not pattern:
        return False
    if pattern in UNIVERSAL_PATTERNS:
        return True
    return fnmatch.fnmatchcase((shape or "").strip().lower(), pattern)


class RunbookRetriever:
    """
    Retrieves and re-ranks runbook chunks for an enriched alert.

    Usage:
        retriever = RunbookRetriever(vector_store)
        ranked = await retriever.retrieve(query_vector, context, top_k=5)

        for scored in ranked:
            print(f"{scored.final_score:.2f} {scored.chunk.section_title}")
    """

    OVERFETCH_FACTOR = 2

    def __init__(
        self,
        vector_store: VectorStore,
        tag_boost_weight: Optional[float] = None,
        shape_boost_weight: Optional[float] = None,
        boost_cap: Optional[float] = None,
    ):
        """
        Initialize the retriever.

        Args:
            vector_store: Store to search
            tag_boost_weight: Boost per matching tag (default 0.1)
            shape_boost_weight: Boost when a pattern matches the shape (default 0.2)
            boost_cap: Upper bound on the total boost (default 0.3)
        """
        self.vector_store = vector_store
        self.tag_boost_weight = settings.TAG_BOOST_WEIGHT if tag_boost_weight is None else tag_boost_weight
        self.shape_boost_weight = settings.SHAPE_BOOST_WEIGHT if shape_boost_weight is None else shape_boost_weight
        self.boost_cap = settings.METADATA_BOOST_CAP if boost_cap is None else boost_cap

    async def retrieve(
        self,
        query_vector: list[float],
        context: EnrichedContext,
        top_k: Optional[int] = None,
    ) -> list[ScoredChunk]:
        """
        Retrieve the top_k runbook chunks for a context.

        Args:
            query_vector: Embedded query text for the context
            context: Enriched alert used for filtering and boosting
            top_k: Number of results (default: settings.DEFAULT_TOP_K)

        Returns:
            At most top_k ScoredChunk, descending by final score
        """
        top_k = settings.DEFAULT_TOP_K if top_k is None else top_k
        if top_k <= 0:
            raise ValidationFailure(f"top_k must be positive, got {top_k}")

        fetch = top_k * self.OVERFETCH_FACTOR
        while True:
            candidates = await self.vector_store.asearch(query_vector, fetch)
            ranked = self.rerank(candidates, context, top_k)
            # A short page means the store is exhausted
            if len(ranked) >= top_k or len(candidates) < fetch:
                break
            logger.debug(
                f"Only {len(ranked)}/{top_k} applicable chunks in the top {fetch}; widening search"
            )
            fetch *= 2

        logger.info(
            f"Retrieved {len(ranked)}/{len(candidates)} chunks for alert {context.alert.id}"
        )
        return ranked

    def rerank(
        self,
        candidates: list[ScoredChunk],
        context: EnrichedContext,
        top_k: int,
    ) -> list[ScoredChunk]:
        """Filter by shape, apply the metadata boost and re-sort."""
        shape = context.resource_shape
        alert_terms = self._alert_terms(context)
        title = context.alert.title.lower()

        boosted: list[ScoredChunk] = []
        for candidate in candidates:
            chunk = candidate.chunk

            if not self.is_applicable(chunk, shape):
                logger.debug(f"Excluded {chunk.id} ({chunk.section_title}): not for shape {shape}")
                continue

            boost = self.compute_boost(chunk, shape, alert_terms, title)
            boosted.append(ScoredChunk(
                chunk=chunk,
                similarity=candidate.similarity,
                boost=boost,
                final_score=candidate.similarity + boost,
            ))

        # Candidates arrive in similarity order; a stable sort keeps it for ties
        boosted.sort(key=lambda s: s.final_score, reverse=True)
        return boosted[:top_k]

    def is_applicable(self, chunk: Chunk, shape: str) -> bool:
        """A chunk with patterns applies only to shapes one of them matches."""
        if not chunk.applicable_patterns:
            return True
        if any(p.strip().lower() in UNIVERSAL_PATTERNS for p in chunk.applicable_patterns):
            return True
        if not shape:
            # No shape known: the chunk cannot be ruled out
            return True
        return any(matches_pattern(p, shape) for p in chunk.applicable_patterns)

    def compute_boost(
        self,
        chunk: Chunk,
        shape: str,
        alert_terms: set[str],
        alert_title: str,
    ) -> float:
        matched_tags = [
            tag for tag in chunk.tags
            if tag.lower() in alert_terms or tag.lower() in alert_title
        ]
        boost = len(matched_tags) * self.tag_boost_weight

        if shape and any(matches_pattern(p, shape) for p in chunk.applicable_patterns):
            boost += self.shape_boost_weight

        return min(boost, self.boost_cap)

    @staticmethod
    def _alert_terms(context: EnrichedContext) -> set[str]:
        alert = context.alert
        terms = set()
        for mapping in (alert.labels, alert.dimensions):
            for key, value in mapping.items():
                terms.add(str(key).lower())
                if value is not None:
                    terms.add(str(value).lower())
        terms.discard("")
        return terms
