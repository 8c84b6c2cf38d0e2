"""
polyllm: one async interface over several LLM HTTP APIs, with bounded
conversational memory and iterative prompt optimization.
"""
from polyllm.client import BoundedMemory, NoMemory, create_llm, get_prompt_json_schema, update_log_level
from polyllm.core.engine.optimizer import OptimizerConfig, OptimizerState, PromptOptimizer
from polyllm.core.exceptions import (
    APIError,
    CancellationError,
    CapabilityError,
    EmptyResponse,
    InvalidOptionError,
    LLMError,
    MalformedResponse,
    OptimizationExhausted,
    RateLimitError,
    TransportError,
    UnknownProvider,
    ValidationError,
)
from polyllm.core.llm import LLM, Generator, clean_response
from polyllm.core.memory import LLMWithMemory, MemoryWindow
from polyllm.core.providers.registry import ProviderRegistry, default_registry
from polyllm.schemas import Assessment, GenerateOptions, Message, Metric, OptimizationEntry, Prompt
from polyllm.settings import Settings

__version__ = "0.1.0"

__all__ = [
    "APIError",
    "Assessment",
    "BoundedMemory",
    "CancellationError",
    "CapabilityError",
    "EmptyResponse",
    "GenerateOptions",
    "Generator",
    "InvalidOptionError",
    "LLM",
    "LLMError",
    "LLMWithMemory",
    "MalformedResponse",
    "MemoryWindow",
    "Message",
    "Metric",
    "NoMemory",
    "OptimizationEntry",
    "OptimizationExhausted",
    "OptimizerConfig",
    "OptimizerState",
    "Prompt",
    "PromptOptimizer",
    "ProviderRegistry",
    "RateLimitError",
    "Settings",
    "TransportError",
    "UnknownProvider",
    "ValidationError",
    "clean_response",
    "create_llm",
    "default_registry",
    "get_prompt_json_schema",
    "update_log_level",
]
