"""
Section Chunker for Markdown Runbooks

Splits one runbook document into retrievable sections.

Key Features:
- YAML front-matter for runbook-level metadata (title, tags, applicable shapes)
- Section boundaries at level-2 and level-3 headings
- Fenced code blocks are never split and never scanned for headings
- Size bounds: tiny sections merge into a neighbour, oversized ones split
  at paragraph boundaries

Why this architecture?:
---------------------------
1. Why heading-based chunking over fixed-size?
   - Runbook authors already group one diagnostic step per section
   - A section title ("Check swap usage") is a strong retrieval signal
   - A command block separated from its explanation is useless to an operator

2. Size bounds:
   - Sections under MIN_CHUNK_CHARS are heading stubs with little meaning alone
   - Sections over MAX_CHUNK_CHARS dilute the embedding and crowd the prompt
   - A code block larger than the maximum stays whole; a partial command is worse
     than an oversized chunk

3. Front-matter tolerance:
   - Runbooks are hand-written; a broken YAML header must not block ingestion
   - Malformed front-matter yields empty metadata and the document is still chunked
"""

import hashlib
import re
from typing import Any, Optional

import yaml

from runbook_rag.config.logging_config import get_ingestion_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import ChunkDraft

logger = get_ingestion_logger()


class RunbookChunker:
    """
    Heading-aware chunker for markdown runbooks.

    Usage:
        chunker = RunbookChunker()
        drafts = chunker.chunk(markdown_text, "memory/high-usage.md")

        for draft in drafts:
            print(f"{draft.section_title}: {len(draft.content)} chars")
    """

    SECTION_PATTERN = re.compile(r'^(#{2,3})\s+(.+?)\s*#*\s*$')
    TITLE_PATTERN = re.compile(r'^#\s+(.+?)\s*#*\s*$')
    FENCE_PATTERN = re.compile(r'^\s{0,3}(`{3,}|~{3,})')
    FRONT_MATTER_DELIMITER = "---"

    DEFAULT_SECTION_TITLE = "Introduction"
    CONTINUATION_SUFFIX = " (cont.)"

    def __init__(
        self,
        min_chars: Optional[int] = None,
        max_chars: Optional[int] = None,
    ):
        """
        Initialize the chunker.

        Args:
            min_chars: Sections shorter than this merge into a neighbour
            max_chars: Sections longer than this are split
        """
        self.min_chars = settings.MIN_CHUNK_CHARS if min_chars is None else min_chars
        self.max_chars = settings.MAX_CHUNK_CHARS if max_chars is None else max_chars

        if self.max_chars <= 0 or self.min_chars > self.max_chars:
            raise ValueError(
                f"invalid chunk bounds: min={self.min_chars} max={self.max_chars}"
            )

    # =========================================================================
    # Public API
    # =========================================================================

    def chunk(self, text: Optional[str], source_path: str = "") -> list[ChunkDraft]:
        """
        Chunk a runbook document.

        Args:
            text: Raw markdown, optionally starting with YAML front-matter
            source_path: Document path, used for logging only

        Returns:
            Ordered list of ChunkDraft. Empty for blank documents.
        """
        if not text or not text.strip():
            return []

        text = text.replace("\r\n", "\n").replace("\r", "\n")
        metadata, body = self.parse_front_matter(text, source_path)
        body, doc_title = self._strip_document_title(body)

        if not body.strip():
            return []

        tags = _as_string_list(metadata.get("tags"))
        patterns = _as_string_list(
            metadata.get("applicable_shapes", metadata.get("applicable_targets"))
        )

        sections = self._split_sections(body)
        sized = self._apply_size_bounds(sections)

        drafts = [
            ChunkDraft(
                section_title=title,
                content=content,
                tags=tags,
                applicable_patterns=patterns,
            )
            for title, content in sized
        ]

        logger.debug(
            f"Chunked {source_path or '<inline>'} "
            f"(title={metadata.get('title') or doc_title!r}): "
            f"{len(sections)} sections -> {len(drafts)} chunks"
        )
        return drafts

    def parse_front_matter(self, text: str, source_path: str = "") -> tuple[dict, str]:
        """
        Separate YAML front-matter from the document body.

        Returns:
            (metadata, body). Metadata is empty when the block is missing,
            unterminated, invalid YAML or not a mapping.
        """
        lines = text.split("\n")
        if not lines or lines[0].strip() != self.FRONT_MATTER_DELIMITER:
            return {}, text

        closing = None
        for index in range(1, len(lines)):
            if lines[index].strip() in (self.FRONT_MATTER_DELIMITER, "..."):
                closing = index
                break

        if closing is None:
            logger.warning(f"Unterminated front-matter in {source_path or '<inline>'}; ignoring it")
            return {}, text

        raw = "\n".join(lines[1:closing])
        body = "\n".join(lines[closing + 1:])

        try:
            metadata = yaml.safe_load(raw) if raw.strip() else {}
        except yaml.YAMLError as e:
            logger.warning(f"Invalid front-matter in {source_path or '<inline>'}: {e}")
            return {}, body

        if metadata is None:
            metadata = {}
        if not isinstance(metadata, dict):
            logger.warning(
                f"Front-matter in {source_path or '<inline>'} is not a mapping "
                f"({type(metadata).__name__}); ignoring it"
            )
            return {}, body

        return metadata, body

    # =========================================================================
    # Section Splitting
    # =========================================================================

    def _strip_document_title(self, body: str) -> tuple[str, Optional[str]]:
        """Remove a leading level-1 heading; it names the document, not a section."""
        lines = body.split("\n")
        for index, line in enumerate(lines):
            if not line.strip():
                continue
            match = self.TITLE_PATTERN.match(line)
            if match:
                return "\n".join(lines[index + 1:]), match.group(1)
            break
        return body, None

    def _split_sections(self, body: str) -> list[tuple[str, str]]:
        """Split at level-2/3 headings that sit outside fenced code."""
        sections: list[tuple[str, str]] = []
        title = self.DEFAULT_SECTION_TITLE
        buffer: list[str] = []
        fence: Optional[str] = None

        for line in body.split("\n"):
            fence_match = self.FENCE_PATTERN.match(line)
            if fence is not None:
                if fence_match and _closes_fence(line, fence):
                    fence = None
                buffer.append(line)
                continue

            if fence_match:
                fence = fence_match.group(1)
                buffer.append(line)
                continue

            heading = self.SECTION_PATTERN.match(line)
            if heading:
                content = "\n".join(buffer).strip()
                if content:
                    sections.append((title, content))
                title = heading.group(2).strip()
                buffer = []
                continue

            buffer.append(line)

        content = "\n".join(buffer).strip()
        if content:
            sections.append((title, content))

        return sections

    # =========================================================================
    # Size Bounds
    # =========================================================================

    def _apply_size_bounds(self, sections: list[tuple[str, str]]) -> list[tuple[str, str]]:
        """Merge undersized sections and split oversized ones."""
        result: list[tuple[str, str]] = []
        carry: Optional[str] = None
        carry_title = self.DEFAULT_SECTION_TITLE

        for title, content in sections:
            if carry is not None:
                content = f"{carry}\n\n{content}"
                carry = None

            if len(content) < self.min_chars:
                if result and len(result[-1][1]) + len(content) + 2 <= self.max_chars:
                    prev_title, prev_content = result[-1]
                    result[-1] = (prev_title, f"{prev_content}\n\n{content}")
                elif result:
                    result.append((title, content))
                else:
                    carry = content
                    carry_title = title
                continue

            if len(content) > self.max_chars:
                result.extend(self._split_large(title, content))
            else:
                result.append((title, content))

        if carry is not None:
            # Nothing followed the undersized section; keep it rather than lose it
            result.append((carry_title, carry))

        return result

    def _split_large(self, title: str, content: str) -> list[tuple[str, str]]:
        """Greedy-pack paragraph and code blocks into parts of at most max_chars."""
        parts: list[str] = []
        current: list[str] = []
        current_len = 0

        for block in self._split_blocks(content):
            pieces = [block] if _is_fenced(block) else self._split_prose(block)
            for piece in pieces:
                added = len(piece) + (2 if current else 0)
                if current and current_len + added > self.max_chars:
                    parts.append("\n\n".join(current))
                    current, current_len = [], 0
                    added = len(piece)
                current.append(piece)
                current_len += added

        if current:
            parts.append("\n\n".join(current))

        return [
            (title if i == 0 else f"{title}{self.CONTINUATION_SUFFIX}", part)
            for i, part in enumerate(parts)
            if part.strip()
        ]

    def _split_blocks(self, content: str) -> list[str]:
        """Split into blank-line separated paragraphs, keeping fenced blocks whole."""
        blocks: list[str] = []
        paragraph: list[str] = []
        fence_lines: list[str] = []
        fence: Optional[str] = None

        def flush_paragraph():
            if paragraph:
                text = "\n".join(paragraph).strip()
                if text:
                    blocks.append(text)
                paragraph.clear()

        for line in content.split("\n"):
            if fence is not None:
                fence_lines.append(line)
                if self.FENCE_PATTERN.match(line) and _closes_fence(line, fence):
                    blocks.append("\n".join(fence_lines))
                    fence_lines = []
                    fence = None
                continue

            fence_match = self.FENCE_PATTERN.match(line)
            if fence_match:
                flush_paragraph()
                fence = fence_match.group(1)
                fence_lines = [line]
                continue

            if not line.strip():
                flush_paragraph()
            else:
                paragraph.append(line)

        flush_paragraph()
        if fence_lines:
            # Unterminated fence runs to the end of the section
            blocks.append("\n".join(fence_lines))

        return blocks

    def _split_prose(self, paragraph: str) -> list[str]:
        """Break an over-long paragraph at line boundaries, then hard-cut."""
        if len(paragraph) <= self.max_chars:
            return [paragraph]

        pieces: list[str] = []
        current = ""
        for line in paragraph.split("\n"):
            while len(line) > self.max_chars:
                if current:
                    pieces.append(current)
                    current = ""
                pieces.append(line[:self.max_chars])
                line = line[self.max_chars:]
            candidate = f"{current}\n{line}" if current else line
            if len(candidate) > self.max_chars:
                pieces.append(current)
                current = line
            else:
                current = candidate
        if current:
            pieces.append(current)
        return pieces


# =============================================================================
# Helpers
# =============================================================================

def _closes_fence(line: str, fence: str) -> bool:
    stripped = line.strip()
    return (
        len(stripped) >= len(fence)
        and set(stripped) == {fence[0]}
    )


def _is_fenced(block: str) -> bool:
    return bool(RunbookChunker.FENCE_PATTERN.match(block))


def _as_string_list(value: Any) -> list[str]:
    """Normalize a front-matter list value (YAML list or comma string)."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = [str(v) for v in value if v is not None]
    else:
        items = [str(value)]
    return [item.strip() for item in items if item.strip()]


def generate_chunk_id(source_path: str, index: int, content: str) -> str:
    """Generate a deterministic chunk ID from its path, position and text."""
    digest = hashlib.md5(f"{source_path}_{index}_{content[:100]}".encode()).hexdigest()[:16]
    return f"rb_{index:04d}_{digest}"


def chunk_document(text: str, source_path: str = "", **kwargs) -> list[ChunkDraft]:
    """Convenience wrapper around RunbookChunker.chunk."""
    return RunbookChunker(**kwargs).chunk(text, source_path)
