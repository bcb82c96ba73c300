"""
Error taxonomy for the Runbook RAG engine.

ValidationFailure     - malformed input, raised before any work starts
CollaboratorFailure   - an external dependency or pipeline stage failed
PipelineTimeout       - the end-to-end deadline expired
"""

from typing import Optional


class RunbookRagError(Exception):
    """Base class for all engine errors."""


class ValidationFailure(RunbookRagError, ValueError):
    """Input rejected before processing. Never retried."""


class CollaboratorFailure(RunbookRagError):
    """
    A dependency (LLM, embedding provider, storage) or a pipeline stage failed.

    The original exception is kept as ``__cause__`` and on ``cause``.
    """

    def __init__(
        self,
        collaborator: str,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.collaborator = collaborator
        self.cause = cause
        if message is None:
            message = f"{collaborator} failed"
            if cause is not None:
                message = f"{message}: {type(cause).__name__}: {cause}"
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class PipelineTimeout(CollaboratorFailure):
    """The request did not finish within its deadline."""

    def __init__(self, timeout_seconds: float, cause: Optional[BaseException] = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            "pipeline",
            f"checklist generation exceeded {timeout_seconds:.1f}s deadline",
            cause,
        )
