"""
Configuration Module

Application settings and logging configuration.
"""

from runbook_rag.config.settings import Settings, settings
from runbook_rag.config.logging_config import (
    get_logger,
    get_ingestion_logger,
    get_retrieval_logger,
    get_generation_logger,
    get_pipeline_logger,
)

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "get_ingestion_logger",
    "get_retrieval_logger",
    "get_generation_logger",
    "get_pipeline_logger",
]
