#!/usr/bin/env python3
"""
Runbook Ingestion and Checklist Smoke Test

1. Ingest every markdown runbook under a directory
2. Optionally run one sample alert through the full pipeline

Usage:
    # Ingest ./runbooks with the configured providers
    python scripts/ingest_runbooks.py

    # Offline run with mock embeddings and LLM, then a sample alert
    python scripts/ingest_runbooks.py --source runbooks/ --mock --sample-alert

    # Persist into ChromaDB
    python scripts/ingest_runbooks.py --store chroma
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from runbook_rag.config.logging_config import get_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import Alert, AlertSeverity
from runbook_rag.exceptions import RunbookRagError
from runbook_rag.ingestion.embedder import get_embedder
from runbook_rag.ingestion.service import RunbookIngestionService
from runbook_rag.ingestion.storage import LocalDirectoryStorage
from runbook_rag.ingestion.vector_store import get_vector_store
from runbook_rag.llm import get_llm
from runbook_rag.services.generation import ChecklistGenerator
from runbook_rag.services.pipeline import ChecklistPipeline
from runbook_rag.services.retrieval import RunbookRetriever

logger = get_logger("ingest_runbooks", level="DEBUG")


def parse_args():
    parser = argparse.ArgumentParser(description="Ingest runbooks into the vector store")
    parser.add_argument("--source", default=str(settings.RUNBOOK_DIR), help="Runbook directory")
    parser.add_argument("--mock", action="store_true", help="Use mock embedder and LLM")
    parser.add_argument("--store", default=None, help="Vector store provider (memory, chroma)")
    parser.add_argument("--sample-alert", action="store_true", help="Generate a checklist for a sample alert")
    parser.add_argument("--top-k", type=int, default=settings.DEFAULT_TOP_K)
    return parser.parse_args()


async def run(args) -> int:
    embedder = get_embedder("mock" if args.mock else None)
    store = get_vector_store(args.store)
    service = RunbookIngestionService(
        storage=LocalDirectoryStorage(),
        embedder=embedder,
        vector_store=store,
    )

    logger.info(f"📄 Ingesting runbooks from {args.source}")
    total = await service.ingest_all(args.source)
    logger.info(f"   ✅ {total} chunks stored ({store.count()} in store)")

    if not args.sample_alert:
        return 0

    pipeline = ChecklistPipeline(
        embedder=embedder,
        retriever=RunbookRetriever(store),
        generator=ChecklistGenerator(get_llm("mock" if args.mock else None)),
    )
    alert = Alert(
        id="sample-001",
        title="High memory utilization",
        message="Memory usage above 90% for 5 minutes",
        severity=AlertSeverity.CRITICAL,
        timestamp=datetime.now(timezone.utc),
        dimensions={"resourceId": "instance-sample", "shape": "VM.Standard2.1"},
        labels={"memory": "true"},
    )

    checklist = await pipeline.process_alert(alert, args.top_k)
    logger.info(f"📋 {checklist.summary}")
    for step in checklist.steps:
        logger.info(f"   {step.order}. [{step.priority.value}] {step.instruction}")
        for command in step.commands:
            logger.info(f"      $ {command}")
    logger.info(f"   Sources: {', '.join(checklist.source_paths) or 'none'}")
    return 0


def main() -> int:
    args = parse_args()
    try:
        return asyncio.run(run(args))
    except RunbookRagError as e:
        logger.error(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
