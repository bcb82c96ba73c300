"""
Prompt templates for checklist synthesis.

All text sent to the generation provider is assembled from the constants
below, so prompt wording can be reviewed in one place.
"""


CHECKLIST_SYSTEM_PROMPT = """
You are an expert Reliability Engineer for cloud infrastructure.
Your task is to generate a dynamic, context-aware troubleshooting checklist for an active alert.

You will be provided with:
1. ALERT CONTEXT: Details about the triggered alarm and the affected resource.
2. RELEVANT RUNBOOK SECTIONS: Snippets from technical documentation that may apply.

INSTRUCTIONS:
- Synthesize the information into a concise, step-by-step checklist.
- Prioritize safety and data integrity (e.g., check backups before destructive actions).
- If the runbook references specific CLI commands or console steps, include them if relevant.
- If the provided runbook sections do not contain enough information, provide general best practices based on the alert type.
""".strip()

ALERT_CONTEXT_TEMPLATE = """### ALERT CONTEXT
Title: {title}
Severity: {severity}
Message: {message}
Resource: {resource} (Shape: {shape})"""

METRICS_HEADER = "Recent metrics:"
LOGS_HEADER = "Recent logs:"

RUNBOOK_SECTIONS_HEADER = "### RELEVANT RUNBOOK SECTIONS"

CHUNK_TEMPLATE = """---
Runbook: {source_path} (Section: {section_title})
Content:
{content}"""

NO_RUNBOOK_CONTENT = (
    "No matching runbook content was found for this alert. "
    "Base the checklist on general troubleshooting practice for this alert type."
)

OUTPUT_FORMAT_INSTRUCTION = """### OUTPUT FORMAT
Start with one line: Summary: <one sentence describing the likely problem>
Then list the steps as a numbered list. For each step use:
1. <instruction> [HIGH|MEDIUM|LOW]
   Rationale: <why this step matters>
   Current: <observed value, if known>
   Expected: <healthy value, if known>
   ```
   <commands to run, one per line>
   ```"""

GENERATE_INSTRUCTION = (
    "Based on the context and runbook sections above, "
    "generate the troubleshooting checklist:"
)

EMPTY_RESPONSE_INSTRUCTION = (
    "The generation provider returned no content. "
    "Review the alert manually."
)
