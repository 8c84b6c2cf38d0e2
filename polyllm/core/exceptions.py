"""
Error taxonomy shared by providers, the generate pipeline and the optimizer.
"""
from typing import Any, List, Optional


class LLMError(Exception):
    """Base exception for polyllm errors."""

    retryable = False


class UnknownProvider(LLMError):
    """Provider name was never registered."""

    def __init__(self, name: str, available: Optional[List[str]] = None):
        self.name = name
        self.available = available or []
        msg = f"Unknown provider: {name}"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)


class InvalidOptionError(LLMError, ValueError):
    """Option key is not recognized at this call site."""
    pass


class CapabilityError(LLMError):
    """Provider does not support the requested optional capability."""
    pass


class TransportError(LLMError):
    """Network-level or transient provider failure."""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(TransportError):
    """Rate limit exceeded error."""
    pass


class APIError(LLMError):
    """Provider rejected the request (HTTP 4xx other than 429)."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedResponse(LLMError):
    """Response body could not be decoded."""

    retryable = True


class EmptyResponse(LLMError):
    """Response decoded but carries no usable text."""

    retryable = True


class ValidationError(LLMError):
    """Prompt failed schema validation. The caller must fix the prompt."""
    pass


class CancellationError(LLMError):
    """Caller context ended (deadline or explicit cancellation)."""
    pass


class OptimizationExhausted(LLMError):
    """No optimization iteration completed within the retry/iteration budget."""

    def __init__(self, message: str, history: Optional[List[Any]] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.history = list(history or [])
        self.cause = cause


RETRYABLE_ERRORS = (TransportError, MalformedResponse, EmptyResponse)


__all__ = [
    "LLMError",
    "UnknownProvider",
    "InvalidOptionError",
    "CapabilityError",
    "TransportError",
    "RateLimitError",
    "APIError",
    "MalformedResponse",
    "EmptyResponse",
    "ValidationError",
    "CancellationError",
    "OptimizationExhausted",
    "RETRYABLE_ERRORS",
]
