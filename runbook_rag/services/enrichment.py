"""
Context Enrichment Service

Builds an EnrichedContext for an alert by querying three sources
concurrently: resource metadata, recent metrics and recent logs.

A failing source is logged and replaced by its empty default, so the
returned context always has the same shape. The names of failed sources are
recorded under properties["enrichment_failures"].
"""

import asyncio
from datetime import timedelta
from typing import Optional, Protocol, runtime_checkable

from runbook_rag.config.logging_config import get_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import (
    Alert,
    EnrichedContext,
    LogEntry,
    MetricSnapshot,
    ResourceMetadata,
)
from runbook_rag.exceptions import ValidationFailure

logger = get_logger("enrichment")

RESOURCE_ID_DIMENSIONS = ("resourceId", "instanceId", "InstanceId", "resource_id")


# =============================================================================
# Adapter Protocols
# =============================================================================

@runtime_checkable
class EnrichmentCollaborator(Protocol):
    """Anything that can turn an alert into an enriched context."""

    async def enrich(self, alert: Alert) -> EnrichedContext: ...


@runtime_checkable
class MetadataAdapter(Protocol):
    async def get_resource_metadata(self, resource_id: str) -> Optional[ResourceMetadata]: ...


@runtime_checkable
class MetricsAdapter(Protocol):
    async def get_recent_metrics(
        self, resource_id: str, lookback: timedelta
    ) -> list[MetricSnapshot]: ...


@runtime_checkable
class LogsAdapter(Protocol):
    async def get_recent_logs(self, resource_id: str, lookback: timedelta) -> list[LogEntry]: ...


# =============================================================================
# Services
# =============================================================================

def resolve_resource_id(alert: Alert) -> str:
    """Resource id from the alert dimensions, falling back to the alert id."""
    for key in RESOURCE_ID_DIMENSIONS:
        value = alert.dimensions.get(key)
        if value:
            return value
    logger.warning(f"Alert {alert.id} has no resource id dimension; using the alert id")
    return alert.id


class PassthroughEnrichment:
    """Wraps the alert alone, for deployments without enrichment sources."""

    async def enrich(self, alert: Alert) -> EnrichedContext:
        if alert is None:
            raise ValidationFailure("alert is required")
        return EnrichedContext(alert=alert)


class ContextEnrichmentService:
    """
    Fan-out/fan-in enrichment over metadata, metrics and logs adapters.

    Usage:
        service = ContextEnrichmentService(metadata, metrics, logs)
        context = await service.enrich(alert)
    """

    def __init__(
        self,
        metadata_adapter: MetadataAdapter,
        metrics_adapter: MetricsAdapter,
        logs_adapter: LogsAdapter,
        lookback_minutes: Optional[int] = None,
    ):
        self.metadata_adapter = metadata_adapter
        self.metrics_adapter = metrics_adapter
        self.logs_adapter = logs_adapter
        minutes = settings.ENRICHMENT_LOOKBACK_MINUTES if lookback_minutes is None else lookback_minutes
        self.lookback = timedelta(minutes=minutes)

    async def enrich(self, alert: Alert) -> EnrichedContext:
        if alert is None:
            raise ValidationFailure("alert is required")

        resource_id = resolve_resource_id(alert)
        logger.info(f"Enriching alert {alert.id} for resource {resource_id}")

        resource, metrics, logs = await asyncio.gather(
            self.metadata_adapter.get_resource_metadata(resource_id),
            self.metrics_adapter.get_recent_metrics(resource_id, self.lookback),
            self.logs_adapter.get_recent_logs(resource_id, self.lookback),
            return_exceptions=True,
        )

        failures = []
        if isinstance(resource, BaseException):
            failures.append(self._log_failure("metadata", alert, resource))
            resource = None
        if isinstance(metrics, BaseException):
            failures.append(self._log_failure("metrics", alert, metrics))
            metrics = []
        if isinstance(logs, BaseException):
            failures.append(self._log_failure("logs", alert, logs))
            logs = []

        properties = {"resource_id": resource_id}
        if failures:
            properties["enrichment_failures"] = failures

        return EnrichedContext(
            alert=alert,
            resource=resource,
            recent_metrics=tuple(metrics or ()),
            recent_logs=tuple(logs or ()),
            properties=properties,
        )

    @staticmethod
    def _log_failure(source: str, alert: Alert, error: BaseException) -> str:
        if isinstance(error, asyncio.CancelledError):
            raise error
        logger.warning(
            f"Enrichment source {source} failed for alert {alert.id}: "
            f"{type(error).__name__}: {error}"
        )
        return source
