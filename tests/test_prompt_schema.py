"""
Tests for prompt rendering, strict validation and generate options.
"""
import json

import pydantic
import pytest

from polyllm.core.exceptions import InvalidOptionError, ValidationError
from polyllm.schemas.assessment import Assessment, ImprovedPrompt
from polyllm.schemas.prompt import GenerateOptions, Prompt


class TestPrompt:

    def test_plain_input_renders_as_is(self):
        assert Prompt(input="Tell me a joke").render() == "Tell me a joke"

    def test_render_order(self):
        prompt = Prompt(
            input="Summarize the report",
            context="Quarterly sales report",
            directives=["Be concise", "Use bullet points"],
            output="Three bullet points",
            output_format="json",
            examples=["Sales grew 4%"],
            max_length=50,
        )

        text = prompt.render()
        markers = [
            "Context: Quarterly sales report",
            "Directives:\n- Be concise\n- Use bullet points",
            "Summarize the report",
            "Output: Three bullet points",
            "JSON object",
            "Examples:\n- Sales grew 4%",
            "under 50 words",
        ]
        positions = [text.index(m) for m in markers]
        assert positions == sorted(positions)

    def test_system_prompt_not_rendered(self):
        prompt = Prompt(input="Hi", system_prompt="You are a pirate")
        assert "pirate" not in prompt.render()

    def test_frozen(self):
        prompt = Prompt(input="Hi")
        with pytest.raises(pydantic.ValidationError):
            prompt.input = "changed"
        assert prompt.model_copy(update={"input": "changed"}).input == "changed"

    def test_lenient_construction_strict_validation(self):
        prompt = Prompt(input="  ", max_length=0)

        with pytest.raises(ValidationError) as exc_info:
            prompt.validate_strict()
        assert "input" in str(exc_info.value)

    def test_blank_directive_rejected(self):
        with pytest.raises(ValidationError):
            Prompt(input="Hi", directives=["ok", " "]).validate_strict()

    def test_valid_prompt_passes(self):
        Prompt(input="Hi", directives=["Be kind"], max_length=10).validate_strict()

    def test_json_schema(self):
        schema = json.loads(Prompt.json_schema())
        assert schema["title"] == "Prompt"
        assert set(schema["properties"]) >= {"input", "directives", "output_format", "max_length"}


class TestGenerateOptions:

    def test_from_mapping(self):
        options = GenerateOptions.from_mapping({"temperature": 0.5, "stop": ["\n"]})
        assert options.as_overrides() == {"temperature": 0.5, "stop": ["\n"]}

    def test_unknown_key(self):
        with pytest.raises(InvalidOptionError) as exc_info:
            GenerateOptions.from_mapping({"temprature": 0.5, "top_k": 3})
        assert "temprature" in str(exc_info.value)
        assert "top_k" in str(exc_info.value)

    def test_out_of_range(self):
        with pytest.raises(InvalidOptionError):
            GenerateOptions.from_mapping({"top_p": 1.5})

    def test_merged_prefers_other(self):
        base = GenerateOptions(temperature=0.2, max_tokens=100)
        merged = base.merged(GenerateOptions(temperature=0.8))
        assert merged.temperature == 0.8
        assert merged.max_tokens == 100
        assert base.temperature == 0.2


class TestAssessmentSchema:

    def test_pascal_case_keys(self):
        assessment = Assessment.model_validate(
            {
                "OverallScore": 0.7,
                "OverallGrade": "B",
                "Suggestions": [{"Description": "Add examples", "ExpectedImpact": 0.3}],
            }
        )
        assert assessment.overall_score == 0.7
        assert assessment.suggestions[0].expected_impact == 0.3
        assert assessment.metrics == []

    def test_missing_score_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            Assessment.model_validate({"overall_grade": "A"})

    def test_improved_prompt_aliases(self):
        assert ImprovedPrompt.model_validate({"improvedPrompt": "x"}).improved_prompt == "x"
        with pytest.raises(pydantic.ValidationError):
            ImprovedPrompt.model_validate({"improved_prompt": ""})
