"""
Prompt, message and generate-option schemas.
"""
import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from polyllm.core.exceptions import InvalidOptionError, ValidationError

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    """One conversation turn."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(..., description="Speaker role")
    content: str = Field(..., description="Message text")


class Prompt(BaseModel):
    """
    Input text plus optional structured directives.

    Prompts are frozen; use ``model_copy(update=...)`` to derive a new one.
    Field rules are only enforced by :meth:`validate_strict`, which the
    generate pipeline calls when schema validation is requested.
    """

    model_config = ConfigDict(frozen=True)

    input: str = Field(..., description="The main prompt text")
    system_prompt: Optional[str] = Field(None, description="Instruction sent as a system message")
    context: Optional[str] = Field(None, description="Background information for the model")
    directives: List[str] = Field(default_factory=list, description="Instructions the answer must follow")
    output: Optional[str] = Field(None, description="Description of the expected output")
    output_format: Literal["text", "json"] = Field("text", description="Target output format")
    examples: List[str] = Field(default_factory=list, description="Example answers")
    max_length: Optional[int] = Field(None, description="Maximum answer length in words")

    @field_validator("input")
    @classmethod
    def validate_input(cls, v: str, info: ValidationInfo) -> str:
        """Ensure input is not empty."""
        if _strict(info) and not v.strip():
            raise ValueError("Prompt input cannot be empty")
        return v

    @field_validator("directives", "examples")
    @classmethod
    def validate_items(cls, v: List[str], info: ValidationInfo) -> List[str]:
        if _strict(info) and any(not item.strip() for item in v):
            raise ValueError("List entries cannot be empty")
        return v

    @field_validator("max_length")
    @classmethod
    def validate_max_length(cls, v: Optional[int], info: ValidationInfo) -> Optional[int]:
        if _strict(info) and v is not None and v <= 0:
            raise ValueError("max_length must be positive")
        return v

    @property
    def expects_json(self) -> bool:
        return self.output_format == "json"

    def validate_strict(self) -> None:
        """
        Validate the prompt against its schema rules.

        Raises:
            ValidationError: If any rule is violated
        """
        try:
            type(self).model_validate(self.model_dump(), context={"strict": True})
        except PydanticValidationError as e:
            raise ValidationError(f"invalid prompt: {e}") from e

    def render(self) -> str:
        """Render the prompt as the text sent to the provider."""
        parts: List[str] = []
        if self.context:
            parts.append(f"Context: {self.context}")
        if self.directives:
            parts.append("Directives:\n" + "\n".join(f"- {d}" for d in self.directives))
        parts.append(self.input)
        if self.output:
            parts.append(f"Output: {self.output}")
        if self.output_format == "json":
            parts.append("Respond with a single JSON object and nothing else.")
        if self.examples:
            parts.append("Examples:\n" + "\n".join(f"- {e}" for e in self.examples))
        if self.max_length:
            parts.append(f"Please keep your response under {self.max_length} words.")
        return "\n\n".join(parts)

    def __str__(self) -> str:
        return self.render()

    @classmethod
    def json_schema(cls, *, indent: Optional[int] = 2) -> str:
        """JSON Schema document describing the prompt structure."""
        return json.dumps(cls.model_json_schema(), indent=indent)


def _strict(info: ValidationInfo) -> bool:
    return bool(info.context and info.context.get("strict"))


class GenerateOptions(BaseModel):
    """Recognized generate-time overrides. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, ge=1)
    top_p: Optional[float] = Field(None, ge=0.0, le=1.0)
    frequency_penalty: Optional[float] = Field(None, ge=-2.0, le=2.0)
    presence_penalty: Optional[float] = Field(None, ge=-2.0, le=2.0)
    stop: Optional[List[str]] = None
    seed: Optional[int] = None
    n: Optional[int] = Field(None, ge=1)
    size: Optional[str] = Field(None, description="Image size for image-generation providers")

    @classmethod
    def from_mapping(cls, values: Optional[Dict[str, Any]]) -> "GenerateOptions":
        """
        Build options from a plain mapping.

        Raises:
            InvalidOptionError: On unknown keys or out-of-range values
        """
        values = dict(values or {})
        unknown = sorted(set(values) - set(cls.model_fields))
        if unknown:
            raise InvalidOptionError(f"Unknown option(s): {', '.join(unknown)}")
        try:
            return cls(**values)
        except PydanticValidationError as e:
            raise InvalidOptionError(str(e)) from e

    def as_overrides(self) -> Dict[str, Any]:
        """Only the keys that were explicitly set."""
        return self.model_dump(exclude_none=True)

    def merged(self, other: Optional["GenerateOptions"]) -> "GenerateOptions":
        """Return a copy with ``other``'s set keys taking precedence."""
        if other is None:
            return self.model_copy()
        return self.model_copy(update=other.as_overrides())
