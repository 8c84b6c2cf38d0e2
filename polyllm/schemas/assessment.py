"""
Assessment and optimization-history schemas.
"""
from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from polyllm.schemas.prompt import Prompt

LETTER_GRADES = ["A+", "A", "A-", "B+", "B", "B-", "C+", "C", "C-", "D+", "D", "D-", "F"]


class Metric(BaseModel):
    """Named metric value."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., validation_alias=AliasChoices("name", "Name"))
    value: float = Field(0.0, validation_alias=AliasChoices("value", "Value"))
    description: str = Field("", validation_alias=AliasChoices("description", "Description"))


class Strength(BaseModel):
    model_config = ConfigDict(frozen=True)

    point: str = Field(..., validation_alias=AliasChoices("point", "Point"))
    example: str = Field("", validation_alias=AliasChoices("example", "Example"))


class Weakness(BaseModel):
    model_config = ConfigDict(frozen=True)

    point: str = Field(..., validation_alias=AliasChoices("point", "Point"))
    example: str = Field("", validation_alias=AliasChoices("example", "Example"))


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str = Field(..., validation_alias=AliasChoices("description", "Description"))
    expected_impact: float = Field(
        0.0, validation_alias=AliasChoices("expected_impact", "expectedImpact", "ExpectedImpact")
    )
    reasoning: str = Field("", validation_alias=AliasChoices("reasoning", "Reasoning"))


class Assessment(BaseModel):
    """Grading result for one candidate prompt. Higher scores are better."""

    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(
        ..., validation_alias=AliasChoices("overall_score", "overallScore", "OverallScore")
    )
    overall_grade: str = Field(
        "", validation_alias=AliasChoices("overall_grade", "overallGrade", "OverallGrade")
    )
    metrics: List[Metric] = Field(default_factory=list, validation_alias=AliasChoices("metrics", "Metrics"))
    strengths: List[Strength] = Field(default_factory=list, validation_alias=AliasChoices("strengths", "Strengths"))
    weaknesses: List[Weakness] = Field(default_factory=list, validation_alias=AliasChoices("weaknesses", "Weaknesses"))
    suggestions: List[Suggestion] = Field(
        default_factory=list, validation_alias=AliasChoices("suggestions", "Suggestions")
    )


class OptimizationEntry(BaseModel):
    """One iteration's candidate prompt and its assessment."""

    model_config = ConfigDict(frozen=True)

    prompt: Prompt
    assessment: Assessment


class ImprovedPrompt(BaseModel):
    """Revision proposed by the LLM during optimization."""

    improved_prompt: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("improved_prompt", "improvedPrompt", "input", "prompt")
    )
    rationale: str = Field("", validation_alias=AliasChoices("rationale", "Rationale", "reasoning"))
