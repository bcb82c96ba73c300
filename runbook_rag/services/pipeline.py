"""
Checklist Pipeline

Orchestrates one checklist request end to end:

    RECEIVED -> ENRICHING -> RETRIEVING -> GENERATING -> COMPLETED
                     \\            \\             \\
                      +------------+-------------+--> FAILED

Enrichment sub-calls run concurrently inside the enrichment stage;
retrieval always completes before generation starts. The whole request is
bounded by one deadline.

Failure semantics:
- ValidationFailure is raised at call time, before any work is scheduled
- Any stage error reaches the caller as a single CollaboratorFailure that
  names the stage (or provider) and keeps the original cause
- Deadline expiry raises PipelineTimeout and cancels in-flight work
"""

import asyncio
import time
import uuid
from typing import Awaitable, Callable, Optional, Union

from runbook_rag.config.logging_config import get_pipeline_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import (
    Alert,
    Checklist,
    EnrichedContext,
    GenerationConfig,
    PipelineRun,
    PipelineState,
)
from runbook_rag.exceptions import CollaboratorFailure, PipelineTimeout, ValidationFailure
from runbook_rag.ingestion.embedder import EmbeddingProvider
from runbook_rag.services.enrichment import EnrichmentCollaborator, PassthroughEnrichment
from runbook_rag.services.generation import ChecklistGenerator
from runbook_rag.services.retrieval import RunbookRetriever

logger = get_pipeline_logger()

StateListener = Callable[[PipelineRun], None]


class ChecklistPipeline:
    """
    Alert-to-checklist orchestrator.

    Usage:
        pipeline = ChecklistPipeline(embedder, retriever, generator, enrichment)

        checklist = await pipeline.process_alert(alert)      # enrich first
        checklist = await pipeline.process(context, top_k=3) # already enriched
        checklist = await pipeline.produce(alert_or_context)
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        retriever: RunbookRetriever,
        generator: ChecklistGenerator,
        enrichment: Optional[EnrichmentCollaborator] = None,
        timeout_seconds: Optional[float] = None,
        generation_config: Optional[GenerationConfig] = None,
        state_listener: Optional[StateListener] = None,
    ):
        self.embedder = embedder
        self.retriever = retriever
        self.generator = generator
        self.enrichment = enrichment or PassthroughEnrichment()
        self.timeout_seconds = (
            settings.PIPELINE_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        self.generation_config = generation_config
        self.state_listener = state_listener

    # =========================================================================
    # Public API
    # =========================================================================

    def process(
        self, context: EnrichedContext, top_k: Optional[int] = None
    ) -> Awaitable[Checklist]:
        """
        Produce a checklist for an already-enriched context.

        Raises:
            ValidationFailure: immediately, for a missing context or bad top_k
        """
        if context is None:
            raise ValidationFailure("context is required")
        if not isinstance(context, EnrichedContext):
            raise ValidationFailure(f"expected EnrichedContext, got {type(context).__name__}")
        top_k = self._validate_top_k(top_k)
        run = self._new_run(context.alert.id)
        return self._with_deadline(run, self._run_from_context(run, context, top_k))

    def process_alert(self, alert: Alert, top_k: Optional[int] = None) -> Awaitable[Checklist]:
        """
        Enrich an alert, then produce its checklist.

        Raises:
            ValidationFailure: immediately, for a missing alert or bad top_k
        """
        if alert is None:
            raise ValidationFailure("alert is required")
        if not isinstance(alert, Alert):
            raise ValidationFailure(f"expected Alert, got {type(alert).__name__}")
        top_k = self._validate_top_k(top_k)
        run = self._new_run(alert.id)
        return self._with_deadline(run, self._run_from_alert(run, alert, top_k))

    def produce(
        self, item: Union[Alert, EnrichedContext], top_k: Optional[int] = None
    ) -> Awaitable[Checklist]:
        """Boundary operation: accepts either an alert or an enriched context."""
        if isinstance(item, EnrichedContext):
            return self.process(item, top_k)
        if isinstance(item, Alert):
            return self.process_alert(item, top_k)
        raise ValidationFailure(
            f"expected Alert or EnrichedContext, got {type(item).__name__}"
        )

    # =========================================================================
    # Stages
    # =========================================================================

    async def _run_from_alert(self, run: PipelineRun, alert: Alert, top_k: int) -> Checklist:
        self._transition(run, PipelineState.ENRICHING)
        context = await self._stage("enrichment", self.enrichment.enrich(alert))
        return await self._run_from_context(run, context, top_k)

    async def _run_from_context(
        self, run: PipelineRun, context: EnrichedContext, top_k: int
    ) -> Checklist:
        self._transition(run, PipelineState.RETRIEVING)
        query_vector = await self._stage("embedding", self.embedder.embed(context.to_query_text()))
        chunks = await self._stage(
            "retrieval", self.retriever.retrieve(query_vector, context, top_k)
        )

        self._transition(run, PipelineState.GENERATING)
        return await self._stage(
            "generation", self.generator.generate(context, chunks, self.generation_config)
        )

    async def _stage(self, name: str, awaitable: Awaitable):
        try:
            return await awaitable
        except CollaboratorFailure:
            raise
        except Exception as e:
            raise CollaboratorFailure(name, cause=e) from e

    async def _with_deadline(self, run: PipelineRun, work: Awaitable[Checklist]) -> Checklist:
        start_time = time.time()
        try:
            checklist = await asyncio.wait_for(work, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            run.error = f"deadline of {self.timeout_seconds:.1f}s exceeded"
            self._transition(run, PipelineState.FAILED)
            logger.error(f"[{run.request_id}] {run.error}")
            raise PipelineTimeout(self.timeout_seconds, cause=e) from e
        except CollaboratorFailure as e:
            run.error = str(e)
            self._transition(run, PipelineState.FAILED)
            logger.error(f"[{run.request_id}] failed in {e.collaborator}: {e}")
            raise

        self._transition(run, PipelineState.COMPLETED)
        logger.info(
            f"[{run.request_id}] checklist for alert {checklist.alert_id}: "
            f"{len(checklist.steps)} steps from {len(checklist.source_paths)} runbooks "
            f"in {time.time() - start_time:.2f}s"
        )
        return checklist

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _validate_top_k(top_k: Optional[int]) -> int:
        top_k = settings.DEFAULT_TOP_K if top_k is None else top_k
        if not isinstance(top_k, int) or isinstance(top_k, bool) or top_k <= 0:
            raise ValidationFailure(f"top_k must be a positive integer, got {top_k!r}")
        return top_k

    def _new_run(self, alert_id: str) -> PipelineRun:
        run = PipelineRun(request_id=uuid.uuid4().hex[:8])
        logger.info(f"[{run.request_id}] received alert {alert_id}")
        self._notify(run)
        return run

    def _transition(self, run: PipelineRun, state: PipelineState) -> None:
        run.advance(state)
        logger.debug(f"[{run.request_id}] -> {state.value}")
        self._notify(run)

    def _notify(self, run: PipelineRun) -> None:
        if self.state_listener is not None:
            self.state_listener(run)
