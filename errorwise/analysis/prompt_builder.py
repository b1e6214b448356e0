"""Prompt construction for error analysis.

The user message always embeds the sanitized error text plus whatever context
is available (code snippet, framework, stack frames, referenced docs). The
requested JSON shape depends on the tier: higher tiers ask for more fields.
"""

from __future__ import annotations

from errorwise.analysis.detection import StackFrame
from errorwise.analysis.url_context import UrlContext
from errorwise.orchestrator.types import AnalysisRequest, HistoryEntry, PromptPayload, Tier

MAX_STACK_FRAMES = 3

SYSTEM_MESSAGE = """You are an expert assistant who helps developers and learners understand and solve programming errors.

Your approach:
1. Understand the problem thoroughly before explaining
2. Identify the root cause clearly and simply
3. Explain why the error happens in plain language
4. Provide step-by-step solutions that anyone can follow
5. Include working code examples when relevant
6. Share best practices to prevent similar issues

When the question is written in an Indian language, answer in the same language and script.
Always respond with a single valid JSON object and nothing else."""

# ═══════════════════════════════════════════════════════════════════════════
# Response formats per tier
# ═══════════════════════════════════════════════════════════════════════════

_FREE_FORMAT = """{
  "explanation": "A clear, friendly explanation (3-4 sentences) of what the problem is and why it occurred.",
  "solution": "Practical steps (2-3 sentences) to solve this right now.",
  "codeExample": "Working code that demonstrates the fix, with comments explaining what changed.",
  "category": "Type of problem (e.g. syntax, runtime, dependency, network)",
  "tags": ["relevant", "keywords"],
  "confidence": 0.85
}"""

_PRO_FORMAT = """{
  "explanation": "A comprehensive explanation (5-6 sentences) of the root cause, why it happens and the concepts involved.",
  "solution": "A solution with 3-4 specific steps, including alternative approaches when relevant.",
  "codeExample": "Complete working code with before/after comparison and comments.",
  "category": "Type of problem",
  "tags": ["relevant", "keywords"],
  "confidence": 0.9,
  "preventionTips": ["How to avoid this class of error in the future"],
  "complexity": "Difficulty of the fix: low, medium or high"
}"""

_TEAM_FORMAT = """{
  "explanation": "An expert-level explanation of the root cause, the underlying mechanism and its impact on the wider system.",
  "solution": "A step-by-step production-ready solution, including trade-offs between approaches.",
  "codeExample": "Production-quality code with error handling and comments.",
  "codeExamples": ["Additional examples showing alternative fixes"],
  "category": "Type of problem",
  "tags": ["relevant", "keywords"],
  "confidence": 0.95,
  "preventionTips": ["Process or tooling changes that prevent recurrence"],
  "relatedErrors": ["Errors that commonly appear together with this one"],
  "debugging": "A debugging strategy for confirming the root cause",
  "alternatives": ["Alternative approaches and when to prefer them"],
  "resources": ["Official documentation worth reading"]
}"""

_FORMATS = {
    Tier.FREE: _FREE_FORMAT,
    Tier.PRO: _PRO_FORMAT,
    Tier.TEAM: _TEAM_FORMAT,
}


def response_format_for(tier: Tier) -> str:
    return _FORMATS.get(tier, _FREE_FORMAT)


def build_prompt(
    sanitized_text: str,
    language: str,
    error_type: str,
    tier: Tier,
    request: AnalysisRequest | None = None,
    stack_frames: list[StackFrame] | None = None,
    url_context: list[UrlContext] | None = None,
    history: tuple[HistoryEntry, ...] = (),
) -> PromptPayload:
    """Assemble the system message, user message and prior turns for a provider call.

    ``history`` must already be filtered by the caller (tier capability and
    entry cap); it is passed through untouched.
    """
    lines = [
        "Analyze the following error.",
        "",
        f'Issue: """{sanitized_text}"""',
        f"Language: {language}" if language else "Language: unknown",
    ]
    if error_type:
        lines.append(f"Type: {error_type}")

    if request is not None:
        if request.code_snippet:
            lines.append("")
            lines.append("Code provided:")
            if request.file_name:
                lines.append(f"File: {request.file_name}")
            if request.line_number:
                lines.append(f"Line: {request.line_number}")
            lines.append(f"```{language}\n{request.code_snippet}\n```")
        if request.framework:
            lines.append(f"Framework: {request.framework}")
        if request.dependencies:
            lines.append(f"Dependencies: {', '.join(request.dependencies)}")
            lines.append("Make sure the solution works with these specific versions.")

    if stack_frames:
        lines.append("")
        lines.append("Stack trace:")
        for idx, frame in enumerate(stack_frames[:MAX_STACK_FRAMES], start=1):
            lines.append(f"{idx}. {frame}")

    if url_context:
        lines.append("")
        lines.append("Referenced documentation:")
        for idx, ctx in enumerate(url_context, start=1):
            lines.append(f"{idx}. Source: {ctx.url}")
            if ctx.title:
                lines.append(f"   Title: {ctx.title}")
            lines.append(f"   Content: {ctx.content}")
        lines.append("Use this documentation to give a more accurate, specific solution.")

    lines.append("")
    lines.append("Respond with JSON in exactly this format:")
    lines.append(response_format_for(tier))

    return PromptPayload(
        system=SYSTEM_MESSAGE,
        user="\n".join(lines),
        history=tuple(history),
        language=language,
        error_type=error_type,
    )
