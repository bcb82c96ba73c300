"""
Services Module

Retrieval, generation, enrichment and request orchestration.
"""

from runbook_rag.services.enrichment import (
    ContextEnrichmentService,
    EnrichmentCollaborator,
    LogsAdapter,
    MetadataAdapter,
    MetricsAdapter,
    PassthroughEnrichment,
    resolve_resource_id,
)
from runbook_rag.services.generation import (
    ChecklistGenerator,
    infer_priority,
    parse_checklist_text,
)
from runbook_rag.services.pipeline import ChecklistPipeline
from runbook_rag.services.retrieval import RunbookRetriever, matches_pattern

__all__ = [
    # Enrichment
    "ContextEnrichmentService",
    "EnrichmentCollaborator",
    "LogsAdapter",
    "MetadataAdapter",
    "MetricsAdapter",
    "PassthroughEnrichment",
    "resolve_resource_id",
    # Generation
    "ChecklistGenerator",
    "infer_priority",
    "parse_checklist_text",
    # Orchestration
    "ChecklistPipeline",
    # Retrieval
    "RunbookRetriever",
    "matches_pattern",
]
