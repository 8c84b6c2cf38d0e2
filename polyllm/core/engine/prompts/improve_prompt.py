"""
Prompts for rewriting a candidate prompt from its assessment.
"""
from typing import Sequence

from polyllm.schemas.assessment import Assessment, OptimizationEntry


def get_improvement_system_prompt() -> str:
    """Get the system prompt for the prompt rewriter."""
    return """You are a prompt engineering expert. Your task is to rewrite prompts so they accomplish their task better.
Keep the original intent, fix the reported weaknesses and apply the suggestions that matter most.
You answer with a single JSON object and never add commentary outside of it."""


def _format_feedback(assessment: Assessment) -> str:
    lines = [f"Overall score: {assessment.overall_score:.2f} ({assessment.overall_grade or 'ungraded'})"]
    if assessment.weaknesses:
        lines.append("Weaknesses:")
        lines.extend(
            f"- {w.point}" + (f" (e.g. {w.example})" if w.example else "") for w in assessment.weaknesses
        )
    if assessment.suggestions:
        lines.append("Suggestions:")
        lines.extend(
            f"- {s.description} (expected impact {s.expected_impact:.2f}){': ' + s.reasoning if s.reasoning else ''}"
            for s in assessment.suggestions
        )
    return "\n".join(lines)


def _format_recent(entries: Sequence[OptimizationEntry]) -> str:
    if not entries:
        return ""
    blocks = []
    for entry in entries:
        blocks.append(
            f"<attempt score=\"{entry.assessment.overall_score:.2f}\">\n{entry.prompt.input}\n</attempt>"
        )
    return "Recent attempts (oldest first):\n" + "\n".join(blocks) + "\n\n"


def build_improvement_prompt(
    current_prompt: str,
    assessment: Assessment,
    task_description: str,
    optimization_goal: str,
    recent_entries: Sequence[OptimizationEntry] = (),
) -> str:
    """Build the rewrite request for the next candidate."""
    return f"""Improve the prompt below.

Task description:
{task_description}

Optimization goal:
{optimization_goal}

{_format_recent(recent_entries)}Current prompt:
<prompt>
{current_prompt}
</prompt>

Assessment of the current prompt:
{_format_feedback(assessment)}

Respond with JSON of exactly this shape:
{{
  "improved_prompt": "the full rewritten prompt",
  "rationale": "one or two sentences on what changed"
}}"""
