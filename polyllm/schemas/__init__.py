"""
Data schemas: prompts, messages, options and assessments.
"""
from polyllm.schemas.assessment import (
    LETTER_GRADES,
    Assessment,
    ImprovedPrompt,
    Metric,
    OptimizationEntry,
    Strength,
    Suggestion,
    Weakness,
)
from polyllm.schemas.prompt import GenerateOptions, Message, Prompt

__all__ = [
    "Assessment",
    "GenerateOptions",
    "ImprovedPrompt",
    "LETTER_GRADES",
    "Message",
    "Metric",
    "OptimizationEntry",
    "Prompt",
    "Strength",
    "Suggestion",
    "Weakness",
]
