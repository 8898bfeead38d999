############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# prompting.py: Prompt assembly for backend adapters
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Prompt payload construction.

Adapters receive one PromptPayload regardless of provider; each adapter
maps it onto its own wire format.
"""

from dataclasses import dataclass, field
from typing import List, Sequence

from backend.app.core.schemas import ConversationTurn, RequestContext, Tier, TierPolicy

SYSTEM_MESSAGE = """You are ErrorWise, an assistant that helps developers, students and \
everyday users understand and fix problems: programming errors, tooling and \
configuration issues, spreadsheet formulas, device troubleshooting and general \
technical questions.

Explain the root cause in plain language, then give practical steps that work \
with current tools. Include a working code, formula or command example when it \
helps. If the request is written in another language (for example Hindi or \
Tamil), answer in that language using its native script.

Always respond with a single valid JSON object and nothing else."""

_RESPONSE_FORMAT = {
    Tier.FREE: (
        '  "explanation": "3-4 clear sentences on what went wrong and why",\n'
        '  "solution": "2-3 sentences with the concrete fix",\n'
    ),
    Tier.PRO: (
        '  "explanation": "A thorough explanation of the root cause and the concept involved",\n'
        '  "solution": "Step-by-step fix, covering the likely variants of the problem",\n'
        '  "preventionTips": ["how to avoid this next time"],\n'
    ),
    Tier.TEAM: (
        '  "explanation": "An in-depth root cause analysis, including architectural context",\n'
        '  "solution": "Step-by-step fix with alternatives and their trade-offs",\n'
        '  "preventionTips": ["process, tooling or design changes that prevent recurrence"],\n'
    ),
}

_COMMON_FORMAT = (
    '  "codeExample": "working example demonstrating the fix (empty if not applicable)",\n'
    '  "category": "short problem category, e.g. code-syntax, network, excel-formula",\n'
    '  "tags": ["relevant", "keywords"],\n'
    '  "confidence": 0.85,\n'
    '  "severity": "low | medium | high | critical"\n'
)


@dataclass
class PromptPayload:
    """Provider-neutral prompt."""

    system: str
    prompt: str
    history: List[ConversationTurn] = field(default_factory=list)
    language: str = "general"
    category: str = "general"


def build_prompt(
    context: RequestContext,
    policy: TierPolicy,
    history: Sequence[ConversationTurn] = (),
) -> PromptPayload:
    """Assemble the prompt for a request under a tier policy."""
    lines = [f'Problem:\n"""{context.text}"""']
    if context.language and context.language != "general":
        lines.append(f"Language: {context.language}")
    if context.category:
        lines.append(f"Detected category: {context.category}")

    if context.code_snippet:
        lines.append("")
        lines.append("Code provided:")
        if context.file_name:
            lines.append(f"File: {context.file_name}")
        if context.line_number:
            lines.append(f"Line: {context.line_number}")
        lines.append(f"```{context.language or ''}\n{context.code_snippet}\n```")

    if context.framework:
        lines.append(f"Framework: {context.framework}")
    if context.dependencies:
        lines.append(f"Dependencies: {', '.join(context.dependencies)}")
        lines.append("Make sure the fix works with these exact versions.")

    if context.stack_frames:
        lines.append("")
        lines.append("Stack trace (top frames):")
        for idx, frame in enumerate(context.stack_frames[:3], start=1):
            lines.append(f"{idx}. {frame.function} at {frame.file}:{frame.line}:{frame.column}")

    if policy.features.external_lookup and context.references:
        lines.append("")
        lines.append("Reference material:")
        for idx, ref in enumerate(context.references, start=1):
            title = f" ({ref.title})" if ref.title else ""
            lines.append(f"{idx}. Source: {ref.source}{title}\n{ref.content}")
        lines.append("Prefer these sources where they apply.")

    lines.append("")
    lines.append("Respond with JSON in exactly this shape:")
    lines.append("{\n" + _RESPONSE_FORMAT[policy.tier] + _COMMON_FORMAT + "}")

    return PromptPayload(
        system=SYSTEM_MESSAGE,
        prompt="\n".join(lines),
        history=list(history),
        language=context.language or "general",
        category=context.category or "general",
    )
