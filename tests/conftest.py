"""
Shared fixtures for the Runbook RAG test suite.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from runbook_rag.domain.models import (
    Alert,
    AlertSeverity,
    Chunk,
    EnrichedContext,
    ResourceMetadata,
)
from runbook_rag.ingestion.embedder import MockEmbedder
from runbook_rag.ingestion.vector_store import InMemoryVectorStore
from runbook_rag.llm.gemini import MockLLM


# =============================================================================
# Builders
# =============================================================================

def build_alert(**overrides) -> Alert:
    fields = {
        "id": "alert-001",
        "title": "High memory utilization",
        "message": "Memory usage above 90% for 5 minutes",
        "severity": AlertSeverity.CRITICAL,
        "timestamp": datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc),
        "dimensions": {"resourceId": "ocid1.instance.oc1..abc"},
        "labels": {},
    }
    fields.update(overrides)
    return Alert(**fields)


def build_context(shape: str = "VM.Standard2.1", **alert_overrides) -> EnrichedContext:
    resource = None
    if shape is not None:
        resource = ResourceMetadata(
            resource_id="ocid1.instance.oc1..abc",
            display_name="app-server-01",
            shape=shape,
        )
    return EnrichedContext(alert=build_alert(**alert_overrides), resource=resource)


def build_chunk(
    chunk_id: str,
    embedding,
    source_path: str = "runbooks/memory.md",
    section_title: str = "Diagnose",
    content: str = "Run free -h to check memory.",
    tags=(),
    patterns=(),
) -> Chunk:
    return Chunk(
        id=chunk_id,
        source_path=source_path,
        section_title=section_title,
        content=content,
        embedding=tuple(embedding),
        tags=tuple(tags),
        applicable_patterns=tuple(patterns),
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def alert() -> Alert:
    return build_alert()


@pytest.fixture
def context() -> EnrichedContext:
    return build_context()


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def embedder() -> MockEmbedder:
    return MockEmbedder(dimension=64)


@pytest.fixture
def mock_llm() -> MockLLM:
    return MockLLM()
