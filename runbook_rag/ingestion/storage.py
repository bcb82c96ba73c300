"""
Runbook Document Storage

Lists and reads runbook documents from a source location.
"""

import asyncio
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from runbook_rag.config.logging_config import get_ingestion_logger
from runbook_rag.config.settings import settings
from runbook_rag.exceptions import ValidationFailure

logger = get_ingestion_logger()


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol for runbook document sources."""

    async def list_documents(self, source: str) -> list[str]:
        """Names of every runbook document under the source."""
        ...

    async def get_document_content(self, source: str, name: str) -> Optional[str]:
        """Document text, or None when the document no longer exists."""
        ...


class LocalDirectoryStorage:
    """
    Runbooks stored as markdown files in a local directory tree.

    Document names are POSIX paths relative to the source directory
    ("memory/high-usage.md"). Relative sources resolve under RUNBOOK_DIR.
    """

    def __init__(self, root: Optional[Path] = None, pattern: str = "*.md"):
        self.root = Path(root or settings.RUNBOOK_DIR)
        self.pattern = pattern

    def _resolve(self, source: str) -> Path:
        path = Path(source) if source else self.root
        if not path.is_absolute():
            path = self.root / path
        return path

    def _list_sync(self, source: str) -> list[str]:
        base = self._resolve(source)
        if not base.is_dir():
            raise FileNotFoundError(f"runbook source is not a directory: {base}")
        return sorted(p.relative_to(base).as_posix() for p in base.rglob(self.pattern) if p.is_file())

    def _read_sync(self, source: str, name: str) -> Optional[str]:
        base = self._resolve(source).resolve()
        path = (base / name).resolve()
        if base not in path.parents:
            raise ValidationFailure(f"document name escapes source directory: {name}")
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    async def list_documents(self, source: str) -> list[str]:
        names = await asyncio.to_thread(self._list_sync, source)
        logger.debug(f"Found {len(names)} runbooks in {self._resolve(source)}")
        return names

    async def get_document_content(self, source: str, name: str) -> Optional[str]:
        return await asyncio.to_thread(self._read_sync, source, name)


STORAGE_ADAPTERS = {
    "local": LocalDirectoryStorage,
}


def get_storage(provider: Optional[str] = None, **kwargs) -> StorageAdapter:
    """Factory function to get a storage adapter by provider name."""
    name = (provider or settings.STORAGE_PROVIDER).lower()
    if name not in STORAGE_ADAPTERS:
        raise ValidationFailure(
            f"unknown storage provider {name!r}; expected one of {sorted(STORAGE_ADAPTERS)}"
        )
    return STORAGE_ADAPTERS[name](**kwargs)
