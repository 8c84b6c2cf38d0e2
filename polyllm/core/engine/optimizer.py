"""
Prompt optimization engine: assess a prompt with the LLM, rewrite it from the
assessment, and repeat until the score threshold or the iteration cap.
"""
import asyncio
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from polyllm.core.engine.prompts.assess_prompt import (
    BUILTIN_METRICS,
    build_assessment_prompt,
    get_assessment_system_prompt,
)
from polyllm.core.engine.prompts.improve_prompt import build_improvement_prompt, get_improvement_system_prompt
from polyllm.core.exceptions import (
    CancellationError,
    EmptyResponse,
    LLMError,
    MalformedResponse,
    OptimizationExhausted,
)
from polyllm.core.llm import Generator, interruptible_sleep
from polyllm.schemas.assessment import LETTER_GRADES, Assessment, ImprovedPrompt, Metric, OptimizationEntry
from polyllm.schemas.prompt import Prompt
from polyllm.utils.logging import get_logger

logger = get_logger(__name__)

IterationCallback = Callable[[int, OptimizationEntry], None]

# Step-level retries cover answer parsing only
STEP_RETRYABLE_ERRORS = (MalformedResponse, EmptyResponse)

DEFAULT_GOAL = "Make the prompt clear, specific and effective at accomplishing the task."


class _GenerateFailed(Exception):
    """Wraps an error that the generate pipeline already gave up on."""

    def __init__(self, error: LLMError):
        super().__init__(str(error))
        self.error = error


class OptimizerState(str, Enum):
    INITIAL = "initial"
    EVALUATING = "evaluating"
    IMPROVING = "improving"
    ACCEPTED = "accepted"
    TERMINATED = "terminated"


class OptimizerConfig(BaseModel):
    """Settings of one optimization run."""

    iterations: int = Field(5, ge=1, description="Maximum number of iterations")
    max_retries: int = Field(3, ge=0, description="Retries per LLM step after the first attempt")
    retry_delay: float = Field(2.0, ge=0.0, description="Seconds between step retries")
    memory_size: int = Field(2, ge=0, description="Recent history entries fed back when rewriting")
    optimization_goal: str = Field(DEFAULT_GOAL, min_length=1)
    rating_system: Literal["numerical", "letter"] = Field("numerical")
    custom_metrics: List[Metric] = Field(default_factory=list)
    threshold: float = Field(0.8, ge=0.0, le=1.0, description="Score at which a candidate is accepted")


def log_iteration(iteration: int, entry: OptimizationEntry) -> None:
    """Default verbose callback: log the full assessment of an iteration."""
    a = entry.assessment
    lines = [
        f"Iteration {iteration} complete:",
        f"  Prompt: {entry.prompt.input}",
        f"  Overall Score: {a.overall_score:.2f}",
        f"  Overall Grade: {a.overall_grade}",
        "  Metrics:",
        *(f"    - {m.name}: {m.value:.2f}" for m in a.metrics),
        "  Strengths:",
        *(f"    - {s.point} (Example: {s.example})" for s in a.strengths),
        "  Weaknesses:",
        *(f"    - {w.point} (Example: {w.example})" for w in a.weaknesses),
        "  Suggestions:",
        *(
            f"    - {s.description} (Expected Impact: {s.expected_impact:.2f}, Reasoning: {s.reasoning})"
            for s in a.suggestions
        ),
    ]
    logger.info("\n".join(lines))


class PromptOptimizer:
    """
    Iteratively improves a prompt using the LLM as both grader and rewriter.

    Each iteration assesses the current candidate, records it in the history
    and either stops (threshold met, iteration cap, cancellation) or asks the
    LLM for a revised candidate. The run always continues from the most recent
    candidate; use :meth:`best_entry` to recover the best-scoring one.
    """

    def __init__(
        self,
        llm: Generator,
        initial_prompt: Union[str, Prompt],
        task_description: str,
        config: Optional[OptimizerConfig] = None,
        *,
        iteration_callback: Optional[IterationCallback] = None,
        verbose: bool = False,
    ):
        """
        Initialize the optimizer.

        Args:
            llm: Generator used for grading and rewriting
            initial_prompt: Seed prompt, assessed as-is in the first iteration
            task_description: What the prompt is meant to accomplish
            config: Run settings
            iteration_callback: Called in-line with (1-based iteration, entry)
            verbose: Log every iteration when no callback is given
        """
        if isinstance(initial_prompt, str):
            initial_prompt = Prompt(input=initial_prompt)
        self.llm = llm
        self.initial_prompt = initial_prompt
        self.task_description = task_description
        self.config = config or OptimizerConfig()
        self.iteration_callback = iteration_callback or (log_iteration if verbose else None)

        self._history: List[OptimizationEntry] = []
        self._state = OptimizerState.INITIAL
        self._cancel_event = asyncio.Event()
        self._running = False
        self.stop_reason: Optional[str] = None

        logger.info(
            f"PromptOptimizer initialized with iterations={self.config.iterations}, "
            f"threshold={self.config.threshold}, rating_system={self.config.rating_system}"
        )

    @property
    def state(self) -> OptimizerState:
        return self._state

    @property
    def metrics(self) -> List[Metric]:
        """Built-in metrics merged with the custom ones (custom wins on name clash)."""
        merged: Dict[str, Metric] = {m.name.lower(): m for m in BUILTIN_METRICS}
        for metric in self.config.custom_metrics:
            merged[metric.name.lower()] = metric
        return list(merged.values())

    def cancel(self) -> None:
        """Request the current run to stop."""
        self._cancel_event.set()
        logger.info("PromptOptimizer cancellation requested")

    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def get_optimization_history(self) -> List[OptimizationEntry]:
        return list(self._history)

    def best_entry(self) -> Optional[OptimizationEntry]:
        """Highest-scoring entry so far (earliest wins ties)."""
        best = None
        for entry in self._history:
            if best is None or entry.assessment.overall_score > best.assessment.overall_score:
                best = entry
        return best

    async def optimize_prompt(self) -> str:
        """
        Run the optimization loop.

        Returns:
            Input text of the last recorded candidate

        Raises:
            OptimizationExhausted: If no iteration completed
            CancellationError: If cancelled before any iteration completed
            RuntimeError: If a run is already in progress on this optimizer
        """
        if self._running:
            raise RuntimeError("optimize_prompt is already running on this optimizer")
        self._running = True
        self._cancel_event.clear()
        self._history = []
        self.stop_reason = None
        failure: Optional[LLMError] = None

        logger.info(f"Starting prompt optimization for task: {self.task_description[:100]}...")
        try:
            candidate = self.initial_prompt
            for iteration in range(1, self.config.iterations + 1):
                if self.is_cancelled():
                    self.stop_reason = "cancelled"
                    break
                logger.info(f"Optimization iteration {iteration}/{self.config.iterations}")

                try:
                    if iteration > 1:
                        self._state = OptimizerState.IMPROVING
                        previous = self._history[-1]
                        candidate = await self._with_retry("improve", lambda: self._improve(previous))
                    self._state = OptimizerState.EVALUATING
                    assessment = await self._with_retry("assess", lambda: self._assess(candidate))
                except LLMError as e:
                    failure = e
                    self.stop_reason = "cancelled" if isinstance(e, CancellationError) else "error"
                    logger.error(f"Optimization stopped in iteration {iteration}: {type(e).__name__}: {e}")
                    break

                entry = OptimizationEntry(prompt=candidate, assessment=assessment)
                self._history.append(entry)
                logger.info(
                    f"Iteration {iteration} complete. Score: {assessment.overall_score:.2f}, "
                    f"grade: {assessment.overall_grade}"
                )
                if self.iteration_callback is not None:
                    self.iteration_callback(iteration, entry)

                if assessment.overall_score >= self.config.threshold:
                    self._state = OptimizerState.ACCEPTED
                    self.stop_reason = "threshold"
                    logger.info(f"Threshold {self.config.threshold} reached after iteration {iteration}")
                    break
            else:
                self.stop_reason = "iterations"
        finally:
            self._state = OptimizerState.TERMINATED
            self._running = False

        if not self._history:
            if isinstance(failure, CancellationError) or (failure is None and self.stop_reason == "cancelled"):
                raise CancellationError("optimization cancelled before any iteration completed") from failure
            raise OptimizationExhausted(
                "optimization failed: no iteration completed", history=self._history, cause=failure
            ) from failure

        return self._history[-1].prompt.input

    async def _with_retry(self, step: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run one LLM step, retrying unparseable answers with the configured delay.

        Errors coming out of ``generate`` were already retried by the pipeline
        and are re-raised unchanged.
        """

        def before_sleep(retry_state: RetryCallState) -> None:
            if retry_state.outcome and retry_state.outcome.failed:
                error = retry_state.outcome.exception()
                logger.warning(
                    f"Optimizer retry - step: {step}, "
                    f"attempt: {retry_state.attempt_number}/{self.config.max_retries + 1}, "
                    f"error_type: {type(error).__name__}, "
                    f"error: {error}"
                )

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(STEP_RETRYABLE_ERRORS),
            stop=stop_after_attempt(self.config.max_retries + 1),
            wait=wait_fixed(self.config.retry_delay),
            sleep=interruptible_sleep(self._cancel_event),
            before_sleep=before_sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await fn()
        except _GenerateFailed as e:
            raise e.error from e.error.__cause__
        return result

    async def _ask_json(self, prompt: Prompt) -> Dict[str, Any]:
        try:
            text = await self.llm.generate(prompt, json_mode=True, cancel_event=self._cancel_event)
        except LLMError as e:
            raise _GenerateFailed(e) from e
        if not text or not text.strip():
            raise EmptyResponse("empty response from LLM")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedResponse(f"error parsing JSON response: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponse("expected a JSON object")
        if not data:
            raise EmptyResponse("empty JSON object from LLM")
        return data

    async def _assess(self, candidate: Prompt) -> Assessment:
        request = Prompt(
            input=build_assessment_prompt(
                prompt_text=candidate.render(),
                task_description=self.task_description,
                optimization_goal=self.config.optimization_goal,
                rating_system=self.config.rating_system,
                metrics=self.metrics,
            ),
            system_prompt=get_assessment_system_prompt(),
            output_format="json",
        )
        data = await self._ask_json(request)
        try:
            assessment = Assessment.model_validate(data)
        except PydanticValidationError as e:
            raise MalformedResponse(f"invalid assessment: {e}") from e

        if not 0.0 <= assessment.overall_score <= 1.0:
            raise MalformedResponse(f"overall_score {assessment.overall_score} outside 0.0-1.0")
        if self.config.rating_system == "letter" and assessment.overall_grade not in LETTER_GRADES:
            raise MalformedResponse(f"invalid letter grade: {assessment.overall_grade!r}")
        return assessment

    async def _improve(self, previous: OptimizationEntry) -> Prompt:
        # The previous candidate is sent as the current prompt, not as an attempt
        recent = self._history[-self.config.memory_size - 1 : -1] if self.config.memory_size else []
        request = Prompt(
            input=build_improvement_prompt(
                current_prompt=previous.prompt.render(),
                assessment=previous.assessment,
                task_description=self.task_description,
                optimization_goal=self.config.optimization_goal,
                recent_entries=recent,
            ),
            system_prompt=get_improvement_system_prompt(),
            output_format="json",
        )
        data = await self._ask_json(request)
        try:
            improved = ImprovedPrompt.model_validate(data)
        except PydanticValidationError as e:
            raise MalformedResponse(f"invalid improved prompt: {e}") from e
        logger.debug(f"Improved prompt: {improved.improved_prompt[:300]}... rationale: {improved.rationale}")
        return previous.prompt.model_copy(update={"input": improved.improved_prompt})


__all__ = ["PromptOptimizer", "OptimizerConfig", "OptimizerState", "IterationCallback", "log_iteration"]
