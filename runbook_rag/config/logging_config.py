"""
Logging Configuration for the Runbook RAG engine

Provides structured logging with configurable levels and formats.

Log levels strategy:
-------------------
   - DEBUG: Detailed flow (chunk splitting, per-chunk boosts, prompt sizes)
   - INFO: High-level progress (pipeline stages, ingestion totals)
   - WARNING: Recoverable issues (skipped documents, parse fallback, failed enrichment)
   - ERROR: Failures surfaced to the caller
"""

import logging
import sys
from typing import Optional


class ColoredFormatter(logging.Formatter):
    """Formatter with colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']

        # Color a copy so file handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{reset}"
        return super().format(record)


def get_logger(
    name: str,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    use_colors: bool = True
) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (usually component name)
        level: Log level (DEBUG, INFO, WARNING, ERROR); defaults to settings.LOG_LEVEL
        log_file: Optional file path for logging
        use_colors: Use colored output for console

    Returns:
        Configured logger instance

    Usage:
        from runbook_rag.config.logging_config import get_logger
        logger = get_logger(__name__)
        logger.info("Processing started")
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    if level is None:
        from runbook_rag.config.settings import settings
        level = settings.LOG_LEVEL

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)

    log_format = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    if use_colors:
        formatter = ColoredFormatter(log_format, datefmt=date_format)
    else:
        formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        logger.addHandler(file_handler)

    return logger


# Pre-configured loggers for main components
def get_ingestion_logger():
    """Logger for ingestion pipeline."""
    return get_logger("ingestion")


def get_retrieval_logger():
    """Logger for retrieval operations."""
    return get_logger("retrieval")


def get_generation_logger():
    """Logger for prompt building and checklist parsing."""
    return get_logger("generation")


def get_pipeline_logger():
    """Logger for request orchestration."""
    return get_logger("pipeline")
