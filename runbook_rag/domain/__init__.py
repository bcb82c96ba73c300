"""
Domain Module

Immutable records exchanged between the engine's components.
"""

from runbook_rag.domain.models import (
    Alert,
    AlertSeverity,
    Checklist,
    ChecklistStep,
    Chunk,
    ChunkDraft,
    EnrichedContext,
    GenerationConfig,
    LogEntry,
    MetricSnapshot,
    PipelineRun,
    PipelineState,
    ResourceMetadata,
    ScoredChunk,
    StepPriority,
)

__all__ = [
    "Alert",
    "AlertSeverity",
    "Checklist",
    "ChecklistStep",
    "Chunk",
    "ChunkDraft",
    "EnrichedContext",
    "GenerationConfig",
    "LogEntry",
    "MetricSnapshot",
    "PipelineRun",
    "PipelineState",
    "ResourceMetadata",
    "ScoredChunk",
    "StepPriority",
]
