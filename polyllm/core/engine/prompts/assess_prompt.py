"""
Grader prompts for assessing a candidate prompt.
"""
from typing import Iterable

from polyllm.schemas.assessment import LETTER_GRADES, Metric

BUILTIN_METRICS = [
    Metric(name="Relevance", description="How well the prompt targets the task"),
    Metric(name="Clarity", description="How unambiguous and easy to follow the prompt is"),
    Metric(name="Specificity", description="How precisely the prompt states constraints and expected output"),
    Metric(name="Completeness", description="Whether the prompt carries all context the task needs"),
]


def get_assessment_system_prompt() -> str:
    """Get the system prompt for the grader."""
    return """You are a meticulous prompt engineering reviewer. You grade prompts strictly and consistently.
You answer with a single JSON object and never add commentary outside of it."""


def _metric_lines(metrics: Iterable[Metric]) -> str:
    return "\n".join(
        f"- {m.name}: {m.description}" if m.description else f"- {m.name}" for m in metrics
    )


def _rating_instructions(rating_system: str) -> str:
    if rating_system == "letter":
        return (
            f'"overall_grade" must be one of: {", ".join(LETTER_GRADES)}. '
            '"overall_score" is the same judgement on a 0.0 to 1.0 scale (A+ = 1.0, F = 0.0).'
        )
    return (
        '"overall_score" is a number between 0.0 (useless) and 1.0 (cannot be improved). '
        '"overall_grade" is a short label such as "excellent", "good", "fair" or "poor".'
    )


def build_assessment_prompt(
    prompt_text: str,
    task_description: str,
    optimization_goal: str,
    rating_system: str,
    metrics: Iterable[Metric],
) -> str:
    """Build the grading request for one candidate prompt."""
    return f"""Assess the following prompt against the task it is meant to accomplish.

Task description:
{task_description}

Optimization goal:
{optimization_goal}

Prompt to assess:
<prompt>
{prompt_text}
</prompt>

Score every metric below between 0.0 and 1.0:
{_metric_lines(metrics)}

{_rating_instructions(rating_system)}

Respond with JSON of exactly this shape:
{{
  "overall_score": 0.0,
  "overall_grade": "",
  "metrics": [{{"name": "", "value": 0.0}}],
  "strengths": [{{"point": "", "example": ""}}],
  "weaknesses": [{{"point": "", "example": ""}}],
  "suggestions": [{{"description": "", "expected_impact": 0.0, "reasoning": ""}}]
}}"""
