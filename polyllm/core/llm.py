"""
Generate pipeline: build the provider request, POST it with retries, parse
and clean the answer.
"""
import asyncio
import contextlib
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, TypeVar, Union

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from polyllm.core.exceptions import (
    RETRYABLE_ERRORS,
    APIError,
    CancellationError,
    CapabilityError,
    RateLimitError,
    TransportError,
)
from polyllm.core.providers.base import Provider, SupportsCustomEndpoint, SupportsMessages
from polyllm.schemas.prompt import GenerateOptions, Message, Prompt
from polyllm.utils.logging import DebugManager

T = TypeVar("T")

OptionsLike = Union[GenerateOptions, Mapping[str, Any], None]

_LEADING_FENCE = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```\s*$")


def clean_response(response: str) -> str:
    """
    Strip Markdown code fences and clip to the outermost JSON object.

    Idempotent for inputs holding at most one JSON object.
    """
    # Strip fences until none are left at either end
    while True:
        stripped = _TRAILING_FENCE.sub("", _LEADING_FENCE.sub("", response, count=1), count=1)
        if stripped == response:
            break
        response = stripped

    # Remove any text before the first '{' and after the last '}'
    start = response.find("{")
    end = response.rfind("}")
    if start != -1 and end > start:
        response = response[start : end + 1]

    return response.strip()


async def run_cancellable(awaitable: Awaitable[T], cancel_event: Optional[asyncio.Event]) -> T:
    """
    Await ``awaitable`` unless ``cancel_event`` fires first.

    Raises:
        CancellationError: If the event was set before the awaitable finished
    """
    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise CancellationError("operation cancelled")

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await waiter
        if not work.done():
            work.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await work
    if work.done() and not work.cancelled():
        return work.result()
    raise CancellationError("operation cancelled")


def interruptible_sleep(cancel_event: Optional[asyncio.Event]) -> Callable[[float], Awaitable[None]]:
    """Sleep function for tenacity that wakes up early on cancellation."""

    async def sleep(seconds: float) -> None:
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise CancellationError("cancelled during retry delay")

    return sleep


class Generator(ABC):
    """Text-generation capability shared by the plain and memory-backed LLMs."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        ...

    @property
    @abstractmethod
    def options(self) -> GenerateOptions:
        ...

    @property
    def supports_memory(self) -> bool:
        return False

    @abstractmethod
    def set_option(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def set_endpoint(self, endpoint: str) -> None:
        ...

    @abstractmethod
    async def generate(
        self,
        prompt: Union[str, Prompt],
        *,
        options: OptionsLike = None,
        json_mode: Optional[bool] = None,
        validate: bool = False,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class LLM(Generator):
    """
    Provider-backed generate pipeline.

    Retries transport failures, HTTP 429/5xx and malformed or empty responses
    with a fixed delay, up to ``max_retries`` retries. The last error is
    re-raised unchanged.
    """

    def __init__(
        self,
        provider: Provider,
        *,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: Optional[float] = 60.0,
        options: OptionsLike = None,
        debug: Optional[DebugManager] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            provider: Provider adapter building and parsing request bodies
            max_retries: Retries after the first attempt
            retry_delay: Seconds between attempts
            timeout: HTTP timeout per attempt in seconds
            options: Default generate options for every call
            debug: Debug event sink
            client: Pre-built HTTP client (tests, custom transports)
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        self.provider = provider
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.debug = debug or DebugManager()
        self._options = _coerce_options(options)
        self._client = client
        self._owns_client = client is None
        # Capabilities are resolved once
        self._supports_messages = isinstance(provider, SupportsMessages)
        self._supports_endpoint = isinstance(provider, SupportsCustomEndpoint)

    @property
    def provider_name(self) -> str:
        return self.provider.name

    @property
    def model(self) -> str:
        return self.provider.model

    @property
    def options(self) -> GenerateOptions:
        return self._options.model_copy()

    @property
    def supports_messages(self) -> bool:
        return self._supports_messages

    def set_option(self, key: str, value: Any) -> None:
        """
        Set a default generate option.

        Raises:
            InvalidOptionError: If the key is not a recognized option
        """
        self.debug.debug("Setting option", key=key, value=value)
        current = self._options.as_overrides()
        current[key] = value
        self._options = GenerateOptions.from_mapping(current)

    def set_endpoint(self, endpoint: str) -> None:
        if not self._supports_endpoint:
            raise CapabilityError(f"provider '{self.provider_name}' does not support setting a custom endpoint")
        self.provider.set_endpoint(endpoint)  # type: ignore[attr-defined]
        self.debug.debug("Endpoint updated", provider=self.provider_name, endpoint=endpoint)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def generate(
        self,
        prompt: Union[str, Prompt],
        *,
        options: OptionsLike = None,
        json_mode: Optional[bool] = None,
        validate: bool = False,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Generate a response for a prompt.

        Args:
            prompt: Prompt text or structured prompt
            options: Per-call overrides of the default options
            json_mode: Clean the answer down to a bare JSON object. Defaults to
                the prompt's ``output_format``
            validate: Validate the prompt against its schema first
            timeout: Overall deadline for the call, retries included
            cancel_event: Caller cancellation signal

        Returns:
            Generated text

        Raises:
            ValidationError: If validation was requested and failed
            CancellationError: If the deadline passed or the call was cancelled
        """
        if isinstance(prompt, str):
            prompt = Prompt(input=prompt)
        if validate:
            self.debug.debug("Validating prompt with JSON schema")
            try:
                prompt.validate_strict()
            except Exception as e:
                self.debug.error("Prompt validation failed", error=str(e))
                raise
        if json_mode is None:
            json_mode = prompt.expects_json

        messages = []
        if prompt.system_prompt:
            messages.append(Message(role="system", content=prompt.system_prompt))
        messages.append(Message(role="user", content=prompt.render()))
        return await self.generate_messages(
            messages, options=options, json_mode=json_mode, timeout=timeout, cancel_event=cancel_event
        )

    async def generate_messages(
        self,
        messages: Sequence[Message],
        *,
        options: OptionsLike = None,
        json_mode: bool = False,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """Generate a reply to a conversation."""
        merged = self._options.merged(_coerce_options(options)).as_overrides()
        if self._supports_messages:
            body = self.provider.prepare_chat_request(messages, merged)  # type: ignore[attr-defined]
            prompt_text = "\n".join(m.content for m in messages)
        else:
            prompt_text = _flatten(messages)
            body = self.provider.prepare_request(prompt_text, merged)

        self.debug.debug(
            "Starting generate",
            provider=self.provider_name,
            model=self.model,
            messages=len(messages),
            request_bytes=len(body),
        )
        self.debug.log_prompt(prompt_text)

        started = time.perf_counter()
        try:
            if timeout is not None:
                response = await asyncio.wait_for(self._send_with_retry(body, cancel_event), timeout=timeout)
            else:
                response = await self._send_with_retry(body, cancel_event)
        except asyncio.TimeoutError as e:
            self.debug.error("Generate deadline exceeded", timeout=timeout)
            raise CancellationError(f"deadline of {timeout}s exceeded") from e
        except Exception as e:
            self.debug.error("Error from generate", error_type=type(e).__name__, error=str(e))
            raise

        self.debug.log_response(response)
        if json_mode:
            cleaned = clean_response(response)
            self.debug.debug("Response cleaned", original_length=len(response), cleaned_length=len(cleaned))
            response = cleaned
        self.debug.debug(
            "Generate completed",
            response_length=len(response),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    def _log_retry_attempt(self, retry_state: RetryCallState) -> None:
        """Log retry attempts for debugging transient API issues."""
        if retry_state.outcome and retry_state.outcome.failed:
            error = retry_state.outcome.exception()
            self.debug.warning(
                "Request retry",
                provider=self.provider_name,
                attempt=f"{retry_state.attempt_number}/{self.max_retries + 1}",
                error_type=type(error).__name__,
                error=str(error),
                delay=self.retry_delay,
            )

    async def _send_with_retry(self, body: bytes, cancel_event: Optional[asyncio.Event]) -> str:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_fixed(self.retry_delay),
            sleep=interruptible_sleep(cancel_event),
            before_sleep=self._log_retry_attempt,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                text = await run_cancellable(self._send(body, attempt.retry_state.attempt_number), cancel_event)
        return text

    async def _send(self, body: bytes, attempt: int) -> str:
        """
        Perform one HTTP exchange and parse the answer.

        Raises:
            TransportError: Network failure or HTTP 5xx
            RateLimitError: HTTP 429
            APIError: Any other HTTP 4xx
            MalformedResponse, EmptyResponse: From the provider parser
        """
        client = await self._ensure_client()
        started = time.perf_counter()
        self.debug.debug("Sending request", endpoint=self.provider.endpoint, attempt=attempt, request_bytes=len(body))
        try:
            response = await client.post(self.provider.endpoint, content=body, headers=self.provider.headers())
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise TransportError(f"Transport error: {e}") from e

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        self.debug.debug(
            "Received response",
            status=response.status_code,
            response_bytes=len(response.content),
            elapsed_ms=elapsed_ms,
        )
        status = response.status_code
        if status == 429:
            raise RateLimitError("Rate limit exceeded", status_code=status)
        if status >= 500:
            raise TransportError(f"HTTP {status}: {response.text}", status_code=status)
        if status >= 400:
            raise APIError(f"HTTP {status}: {response.text}", status_code=status, body=response.text)

        return self.provider.parse_response(response.content)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider='{self.provider_name}', model='{self.model}')"


def _coerce_options(options: OptionsLike) -> GenerateOptions:
    if options is None:
        return GenerateOptions()
    if isinstance(options, GenerateOptions):
        return options
    return GenerateOptions.from_mapping(dict(options))


def _flatten(messages: Sequence[Message]) -> str:
    if len(messages) == 1 and messages[0].role == "user":
        return messages[0].content
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


__all__ = ["Generator", "LLM", "clean_response", "run_cancellable", "interruptible_sleep"]
