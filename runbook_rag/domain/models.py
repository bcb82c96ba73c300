"""
Domain Models

Immutable records shared by ingestion, retrieval, generation and the
pipeline. Every record validates its required fields on construction and
raises ValidationFailure when they are missing.

Collections are copied on construction (lists become tuples, mappings are
copied) so a record never aliases caller-owned state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from runbook_rag.exceptions import ValidationFailure


def _require(value: Any, name: str, record: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationFailure(f"{record}.{name} is required")


def _freeze_list(obj: Any, name: str) -> None:
    object.__setattr__(obj, name, tuple(getattr(obj, name) or ()))


def _copy_mapping(obj: Any, name: str) -> None:
    object.__setattr__(obj, name, dict(getattr(obj, name) or {}))


# =============================================================================
# Enums
# =============================================================================

class AlertSeverity(Enum):
    """Normalized alert severity."""
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"

    @classmethod
    def from_string(cls, value: Union[str, "AlertSeverity"]) -> "AlertSeverity":
        """Parse a severity case-insensitively ("critical", " Warning ")."""
        if isinstance(value, cls):
            return value
        if value is None or not str(value).strip():
            raise ValidationFailure("severity is required")
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValidationFailure(f"unknown alert severity: {value!r}") from None


class StepPriority(Enum):
    """Urgency of a checklist step."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class PipelineState(Enum):
    """Lifecycle of one checklist request."""
    RECEIVED = "received"
    ENRICHING = "enriching"
    RETRIEVING = "retrieving"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# Alert and Enrichment
# =============================================================================

@dataclass(frozen=True)
class Alert:
    """
    A normalized infrastructure alert.

    Dimensions identify the affected resource (e.g. resourceId, region);
    labels are free-form key/value annotations attached by the monitoring
    source.
    """
    id: str
    title: str
    severity: AlertSeverity
    timestamp: datetime
    message: str = ""
    source_service: str = ""
    dimensions: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    raw_payload: Optional[Any] = None

    def __post_init__(self):
        _require(self.id, "id", "Alert")
        _require(self.title, "title", "Alert")
        _require(self.timestamp, "timestamp", "Alert")
        object.__setattr__(self, "severity", AlertSeverity.from_string(self.severity))
        object.__setattr__(self, "message", self.message or "")
        _copy_mapping(self, "dimensions")
        _copy_mapping(self, "labels")


@dataclass(frozen=True)
class ResourceMetadata:
    """Descriptive metadata of the resource an alert fired on."""
    resource_id: str
    display_name: str = ""
    compartment_id: str = ""
    shape: str = ""
    availability_zone: str = ""
    freeform_tags: dict[str, str] = field(default_factory=dict)
    defined_tags: dict[str, dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self):
        _require(self.resource_id, "resource_id", "ResourceMetadata")
        _copy_mapping(self, "freeform_tags")
        _copy_mapping(self, "defined_tags")


@dataclass(frozen=True)
class MetricSnapshot:
    """A single metric reading close to the alert time."""
    metric_name: str
    namespace: str
    value: float
    unit: str
    timestamp: datetime

    def __post_init__(self):
        _require(self.metric_name, "metric_name", "MetricSnapshot")


@dataclass(frozen=True)
class LogEntry:
    """A log line from the affected resource."""
    id: str
    timestamp: datetime
    level: str
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _require(self.message, "message", "LogEntry")
        _copy_mapping(self, "metadata")


@dataclass(frozen=True)
class EnrichedContext:
    """An alert plus everything known about its resource at request time."""
    alert: Alert
    resource: Optional[ResourceMetadata] = None
    recent_metrics: tuple[MetricSnapshot, ...] = ()
    recent_logs: tuple[LogEntry, ...] = ()
    properties: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.alert is None:
            raise ValidationFailure("EnrichedContext.alert is required")
        _freeze_list(self, "recent_metrics")
        _freeze_list(self, "recent_logs")
        _copy_mapping(self, "properties")

    @property
    def resource_shape(self) -> str:
        return self.resource.shape if self.resource else ""

    @property
    def resource_name(self) -> str:
        if self.resource is None:
            return ""
        return self.resource.display_name or self.resource.resource_id

    def to_query_text(self) -> str:
        """Descriptive text embedded to retrieve runbook sections for this context."""
        lines = [
            f"Alert Title: {self.alert.title}",
            f"Alert Message: {self.alert.message}",
        ]
        if self.resource is not None:
            lines.append(f"Resource: {self.resource_name} (Shape: {self.resource.shape})")
        return "\n".join(lines) + "\n"


# =============================================================================
# Runbook Chunks
# =============================================================================

@dataclass(frozen=True)
class ChunkDraft:
    """A runbook section produced by the chunker, before embedding."""
    section_title: str
    content: str
    tags: tuple[str, ...] = ()
    applicable_patterns: tuple[str, ...] = ()

    def __post_init__(self):
        _freeze_list(self, "tags")
        _freeze_list(self, "applicable_patterns")


@dataclass(frozen=True)
class Chunk:
    """
    A stored, embedded runbook section.

    Chunks are replaced wholesale when their source document is re-ingested.
    """
    id: str
    source_path: str
    section_title: str
    content: str
    embedding: tuple[float, ...]
    tags: tuple[str, ...] = ()
    applicable_patterns: tuple[str, ...] = ()

    def __post_init__(self):
        _require(self.id, "id", "Chunk")
        _require(self.source_path, "source_path", "Chunk")
        if not self.embedding:
            raise ValidationFailure("Chunk.embedding is required")
        object.__setattr__(self, "embedding", tuple(float(x) for x in self.embedding))
        _freeze_list(self, "tags")
        _freeze_list(self, "applicable_patterns")

    @property
    def dimension(self) -> int:
        return len(self.embedding)


@dataclass(frozen=True)
class ScoredChunk:
    """A chunk with its similarity, metadata boost and final ranking score."""
    chunk: Chunk
    similarity: float
    boost: float = 0.0
    final_score: Optional[float] = None

    def __post_init__(self):
        if self.final_score is None:
            object.__setattr__(self, "final_score", self.similarity + self.boost)


# =============================================================================
# Generation
# =============================================================================

@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters for one generation call."""
    temperature: float = 0.7
    max_tokens: int = 1000
    model_override: Optional[str] = None

    def __post_init__(self):
        if not 0.0 <= self.temperature <= 1.0:
            raise ValidationFailure(
                f"temperature must be between 0.0 and 1.0, got {self.temperature}"
            )
        if self.max_tokens <= 0:
            raise ValidationFailure(f"max_tokens must be positive, got {self.max_tokens}")

    @classmethod
    def from_settings(cls) -> "GenerationConfig":
        from runbook_rag.config.settings import settings
        return cls(temperature=settings.LLM_TEMPERATURE, max_tokens=settings.LLM_MAX_TOKENS)


@dataclass(frozen=True)
class ChecklistStep:
    """One actionable troubleshooting step."""
    order: int
    instruction: str
    priority: StepPriority = StepPriority.MEDIUM
    rationale: str = ""
    current_value: str = ""
    expected_value: str = ""
    commands: tuple[str, ...] = ()

    def __post_init__(self):
        if self.order < 1:
            raise ValidationFailure(f"ChecklistStep.order must be >= 1, got {self.order}")
        if self.instruction is None:
            raise ValidationFailure("ChecklistStep.instruction is required")
        _freeze_list(self, "commands")

    def to_dict(self) -> dict:
        return {
            "order": self.order,
            "instruction": self.instruction,
            "priority": self.priority.value,
            "rationale": self.rationale,
            "current_value": self.current_value,
            "expected_value": self.expected_value,
            "commands": list(self.commands),
        }


@dataclass(frozen=True)
class Checklist:
    """
    Generated troubleshooting checklist for one alert.

    source_paths lists the runbooks whose sections were placed in the
    prompt, in rank order.
    """
    alert_id: str
    summary: str
    steps: tuple[ChecklistStep, ...]
    source_paths: tuple[str, ...] = ()
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    provider_id: str = ""

    def __post_init__(self):
        _require(self.alert_id, "alert_id", "Checklist")
        _freeze_list(self, "steps")
        _freeze_list(self, "source_paths")
        previous = 0
        for step in self.steps:
            if step.order <= previous:
                raise ValidationFailure("Checklist step order must be strictly increasing")
            previous = step.order

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "alert_id": self.alert_id,
            "summary": self.summary,
            "steps": [step.to_dict() for step in self.steps],
            "source_paths": list(self.source_paths),
            "generated_at": self.generated_at.isoformat(),
            "provider_id": self.provider_id,
        }


# =============================================================================
# Pipeline Tracking
# =============================================================================

@dataclass
class PipelineRun:
    """Mutable progress record of one request through the pipeline."""
    request_id: str
    state: PipelineState = PipelineState.RECEIVED
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.RECEIVED])
    error: Optional[str] = None

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def finished(self) -> bool:
        return self.state in (PipelineState.COMPLETED, PipelineState.FAILED)
