"""
Checklist Generation Service

Builds the generation prompt from an enriched alert and ranked runbook
sections, calls the LLM provider and parses its free-text answer into a
structured Checklist.

Parsing is deliberately lenient: models drift from the requested layout,
so every field is optional and a response with no recognizable steps still
yields a one-step checklist carrying the raw text.
"""

import re
from typing import Optional

from runbook_rag.config import prompts
from runbook_rag.config.logging_config import get_generation_logger
from runbook_rag.config.settings import settings
from runbook_rag.domain.models import (
    Checklist,
    ChecklistStep,
    EnrichedContext,
    GenerationConfig,
    ScoredChunk,
    StepPriority,
)
from runbook_rag.exceptions import CollaboratorFailure
from runbook_rag.llm.base import LlmProvider

logger = get_generation_logger()

MAX_SUMMARY_CHARS = 200
MAX_PROMPT_METRICS = 5
MAX_PROMPT_LOGS = 5


# =============================================================================
# Response Parsing
# =============================================================================

STEP_PATTERN = re.compile(
    r'^\s*(?:[-*]\s+)?(?:\*\*)?(?:step\s+)?(\d+)\s*[.):](?:\*\*)?(?:\s+(.*))?$',
    re.IGNORECASE,
)
FIELD_PATTERN = re.compile(
    r'^\s*(?:[-*]\s+)?(?:\*\*)?(rationale|why|current(?:\s+value)?|expected(?:\s+value)?|priority)'
    r'(?:\*\*)?\s*:\s*(?:\*\*)?\s*(.*)$',
    re.IGNORECASE,
)
SUMMARY_PATTERN = re.compile(r'^\s*(?:#+\s*)?(?:\*\*)?summary(?:\*\*)?\s*:\s*(?:\*\*)?\s*(.*)$', re.IGNORECASE)
PRIORITY_MARKER_PATTERN = re.compile(r'[\[(]\s*(HIGH|MEDIUM|LOW)\s*(?:PRIORITY)?\s*[\])]', re.IGNORECASE)
FENCE_PATTERN = re.compile(r'^\s*(`{3,}|~{3,})')
URGENT_PATTERN = re.compile(r'\b(urgent|urgently|critical|immediately)\b', re.IGNORECASE)


class _StepBuilder:
    """Accumulates the lines of one step while parsing."""

    def __init__(self, instruction: str):
        self.instruction = instruction
        self.rationale = ""
        self.current_value = ""
        self.expected_value = ""
        self.priority: Optional[StepPriority] = None
        self.commands: list[str] = []

    def add_text(self, text: str) -> None:
        self.instruction = f"{self.instruction} {text}".strip() if self.instruction else text

    def set_field(self, name: str, value: str) -> None:
        name = name.lower()
        if name in ("rationale", "why"):
            self.rationale = f"{self.rationale} {value}".strip()
        elif name.startswith("current"):
            self.current_value = value
        elif name.startswith("expected"):
            self.expected_value = value
        elif name == "priority":
            self.priority = _parse_priority(value)

    def build(self, order: int) -> ChecklistStep:
        instruction = self.instruction
        priority = self.priority

        marker = PRIORITY_MARKER_PATTERN.search(instruction)
        if marker:
            if priority is None:
                priority = StepPriority(marker.group(1).upper())
            instruction = PRIORITY_MARKER_PATTERN.sub("", instruction)
        instruction = instruction.replace("**", "").strip().rstrip(":").strip()

        if priority is None:
            priority = infer_priority(instruction)

        return ChecklistStep(
            order=order,
            instruction=instruction,
            priority=priority,
            rationale=self.rationale,
            current_value=self.current_value,
            expected_value=self.expected_value,
            commands=self.commands,
        )


def _parse_priority(value: str) -> Optional[StepPriority]:
    match = re.search(r'\b(HIGH|MEDIUM|LOW)\b', value or "", re.IGNORECASE)
    return StepPriority(match.group(1).upper()) if match else None


def infer_priority(text: str) -> StepPriority:
    """HIGH when the text reads as urgent, otherwise MEDIUM."""
    return StepPriority.HIGH if URGENT_PATTERN.search(text or "") else StepPriority.MEDIUM


def _commands_from_block(lines: list[str]) -> list[str]:
    """Non-blank fenced lines, with backslash continuations joined."""
    commands: list[str] = []
    pending = ""
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.endswith("\\"):
            pending += stripped[:-1].rstrip() + " "
            continue
        commands.append(pending + stripped)
        pending = ""
    if pending.strip():
        commands.append(pending.strip())
    return commands


def truncate_summary(text: str) -> str:
    text = text.strip()
    if len(text) > MAX_SUMMARY_CHARS:
        return text[:MAX_SUMMARY_CHARS - 3] + "..."
    return text


def parse_checklist_text(text: str) -> tuple[str, list[ChecklistStep]]:
    """
    Parse an LLM response into (summary, steps).

    Never raises on free text. Steps are renumbered 1..n in the order they
    appear, so their order is always strictly increasing.
    """
    summary = ""
    first_prose = ""
    builders: list[_StepBuilder] = []
    fence: Optional[str] = None
    fence_lines: list[str] = []

    for line in (text or "").split("\n"):
        fence_match = FENCE_PATTERN.match(line)

        if fence is not None:
            if fence_match and set(line.strip()) == {fence[0]}:
                if builders:
                    builders[-1].commands.extend(_commands_from_block(fence_lines))
                fence, fence_lines = None, []
            else:
                fence_lines.append(line)
            continue

        if fence_match:
            fence, fence_lines = fence_match.group(1), []
            continue

        if not line.strip():
            continue

        summary_match = SUMMARY_PATTERN.match(line)
        if summary_match and not summary:
            summary = summary_match.group(1).replace("**", "").strip()
            continue

        step_match = STEP_PATTERN.match(line)
        if step_match:
            builders.append(_StepBuilder((step_match.group(2) or "").strip()))
            continue

        if builders:
            field_match = FIELD_PATTERN.match(line)
            if field_match:
                builders[-1].set_field(field_match.group(1), field_match.group(2).strip())
            else:
                builders[-1].add_text(line.strip().lstrip("-* ").strip())
        elif not first_prose:
            candidate = line.strip().lstrip("#").replace("**", "").strip()
            if candidate:
                first_prose = candidate

    # Unterminated fence: its lines still belong to the last step
    if fence is not None and builders:
        builders[-1].commands.extend(_commands_from_block(fence_lines))

    steps: list[ChecklistStep] = []
    for builder in builders:
        step = builder.build(len(steps) + 1)
        if step.instruction or step.commands:
            steps.append(step)

    return truncate_summary(summary or first_prose), steps


# =============================================================================
# Generator
# =============================================================================

class ChecklistGenerator:
    """
    Prompt assembly, LLM call and output parsing.

    Usage:
        generator = ChecklistGenerator(llm)
        checklist = await generator.generate(context, ranked_chunks)

        for step in checklist.steps:
            print(f"{step.order}. [{step.priority.value}] {step.instruction}")
    """

    def __init__(self, llm: LlmProvider, max_context_chars: Optional[int] = None):
        self.llm = llm
        self.max_context_chars = (
            settings.MAX_CONTEXT_CHARS if max_context_chars is None else max_context_chars
        )

    # =========================================================================
    # Prompt Construction
    # =========================================================================

    def select_chunks(self, chunks: list[ScoredChunk]) -> list[ScoredChunk]:
        """Keep chunks in rank order within the context budget; the first always fits."""
        selected: list[ScoredChunk] = []
        used = 0
        for scored in chunks:
            size = len(scored.chunk.content)
            if selected and used + size > self.max_context_chars:
                logger.debug(
                    f"Context budget reached after {len(selected)} chunks; "
                    f"dropping {len(chunks) - len(selected)}"
                )
                break
            selected.append(scored)
            used += size
        return selected

    def format_context(self, context: EnrichedContext) -> str:
        alert = context.alert
        parts = [prompts.ALERT_CONTEXT_TEMPLATE.format(
            title=alert.title,
            severity=alert.severity.value,
            message=alert.message or "(none)",
            resource=context.resource_name or "unknown",
            shape=context.resource_shape or "unknown",
        )]

        if context.recent_metrics:
            lines = [prompts.METRICS_HEADER]
            for metric in context.recent_metrics[:MAX_PROMPT_METRICS]:
                lines.append(
                    f"- {metric.metric_name} ({metric.namespace}): {metric.value:g} {metric.unit}".rstrip()
                )
            parts.append("\n".join(lines))

        if context.recent_logs:
            lines = [prompts.LOGS_HEADER]
            for entry in context.recent_logs[:MAX_PROMPT_LOGS]:
                lines.append(f"- [{entry.level}] {entry.message}")
            parts.append("\n".join(lines))

        return "\n".join(parts)

    def build_prompt(self, context: EnrichedContext, chunks: list[ScoredChunk]) -> str:
        sections = [prompts.RUNBOOK_SECTIONS_HEADER]
        if chunks:
            for scored in chunks:
                sections.append(prompts.CHUNK_TEMPLATE.format(
                    source_path=scored.chunk.source_path,
                    section_title=scored.chunk.section_title,
                    content=scored.chunk.content,
                ))
        else:
            sections.append(prompts.NO_RUNBOOK_CONTENT)

        return "\n\n".join([
            prompts.CHECKLIST_SYSTEM_PROMPT,
            self.format_context(context),
            "\n".join(sections),
            prompts.OUTPUT_FORMAT_INSTRUCTION,
            prompts.GENERATE_INSTRUCTION,
        ])

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate(
        self,
        context: EnrichedContext,
        chunks: list[ScoredChunk],
        config: Optional[GenerationConfig] = None,
    ) -> Checklist:
        """
        Generate a checklist for the context from the ranked chunks.

        Raises:
            CollaboratorFailure: the LLM provider failed
        """
        config = config or GenerationConfig.from_settings()
        included = self.select_chunks(list(chunks or []))
        prompt = self.build_prompt(context, included)
        provider_id = getattr(self.llm, "provider_id", type(self.llm).__name__)

        logger.info(
            f"Generating checklist for alert {context.alert.id} with {provider_id} "
            f"({len(included)} chunks, {len(prompt)} prompt chars)"
        )

        try:
            text = await self.llm.generate_text(prompt, config)
        except CollaboratorFailure:
            raise
        except Exception as e:
            logger.error(f"LLM provider {provider_id} failed: {type(e).__name__}: {e}")
            raise CollaboratorFailure(provider_id, cause=e) from e

        return self.parse_response(text, context, included, provider_id)

    def parse_response(
        self,
        text: Optional[str],
        context: EnrichedContext,
        included: list[ScoredChunk],
        provider_id: str,
    ) -> Checklist:
        summary, steps = parse_checklist_text(text or "")

        if not steps:
            raw = (text or "").strip()
            logger.warning(
                f"No numbered steps in response for alert {context.alert.id}; "
                f"returning single-step fallback"
            )
            steps = [ChecklistStep(
                order=1,
                instruction=raw or prompts.EMPTY_RESPONSE_INSTRUCTION,
                priority=infer_priority(raw),
            )]

        source_paths = list(dict.fromkeys(s.chunk.source_path for s in included))

        return Checklist(
            alert_id=context.alert.id,
            summary=summary or truncate_summary(context.alert.title),
            steps=tuple(steps),
            source_paths=tuple(source_paths),
            provider_id=provider_id,
        )
