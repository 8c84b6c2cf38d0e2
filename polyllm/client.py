"""
Public entry points: build a configured generator from settings.
"""
from typing import Any, NamedTuple, Optional, Union

import httpx

from polyllm.core.llm import LLM, Generator
from polyllm.core.memory import LLMWithMemory
from polyllm.core.providers.registry import ProviderRegistry, default_registry
from polyllm.schemas.prompt import GenerateOptions, Prompt
from polyllm.settings import Settings
from polyllm.utils.logging import DebugManager, get_logger, setup_logging
from polyllm.utils.tokens import Tokenizer

logger = get_logger(__name__)


class NoMemory(NamedTuple):
    """Stateless generation."""


class BoundedMemory(NamedTuple):
    """Token-bounded conversation memory."""

    max_tokens: int
    system_prompt: Optional[str] = None


MemoryOption = Union[NoMemory, BoundedMemory]


def create_llm(
    settings: Optional[Settings] = None,
    *,
    memory: Optional[MemoryOption] = None,
    registry: Optional[ProviderRegistry] = None,
    tokenizer: Optional[Tokenizer] = None,
    client: Optional[httpx.AsyncClient] = None,
    debug: Optional[DebugManager] = None,
    configure_logging: bool = True,
    **overrides: Any,
) -> Generator:
    """
    Create a generator from settings.

    Args:
        settings: Resolved settings (default: loaded from the environment)
        memory: ``NoMemory()`` or ``BoundedMemory(max_tokens)``. Defaults to
            ``settings.memory_max_tokens``
        registry: Provider registry (default: built-in providers)
        tokenizer: Token counter for the memory window
        client: Pre-built HTTP client
        debug: Debug event sink
        configure_logging: Install the console log sink from the settings
        **overrides: Settings fields overriding ``settings``

    Returns:
        ``LLM`` or ``LLMWithMemory``

    Raises:
        UnknownProvider: If the provider name is not registered
        ValueError: If no API key is configured for the provider
    """
    if settings is None:
        settings = Settings(**overrides)
    elif overrides:
        settings = Settings.model_validate({**settings.model_dump(), **overrides})

    if configure_logging:
        setup_logging(settings.log_level, settings.log_format)

    registry = registry or default_registry()
    provider = registry.resolve(
        settings.provider,
        api_key=settings.get_api_key(),
        model=settings.model,
    )

    options = GenerateOptions(temperature=settings.temperature, max_tokens=settings.max_tokens)
    debug = debug or DebugManager(
        get_logger("polyllm"),
        log_prompts=settings.log_prompts,
        log_responses=settings.log_responses,
    )
    base = LLM(
        provider,
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay,
        timeout=settings.timeout,
        options=options,
        debug=debug,
        client=client,
    )
    if settings.endpoint:
        base.set_endpoint(settings.endpoint)

    if memory is None:
        memory = BoundedMemory(settings.memory_max_tokens) if settings.memory_max_tokens else NoMemory()

    logger.debug(f"Created LLM provider={settings.provider} model={settings.model} memory={memory!r}")
    if isinstance(memory, BoundedMemory):
        return LLMWithMemory(base, memory.max_tokens, tokenizer=tokenizer, system_prompt=memory.system_prompt)
    return base


def get_prompt_json_schema() -> str:
    """JSON Schema of the :class:`Prompt` structure."""
    return Prompt.json_schema()


def update_log_level(level: str, log_format: str = "plain") -> None:
    """Change the minimum level of the console log sink."""
    setup_logging(level, log_format)


__all__ = ["create_llm", "get_prompt_json_schema", "update_log_level", "NoMemory", "BoundedMemory"]
