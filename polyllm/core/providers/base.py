"""
Base provider interface for LLM interactions.

A provider is a stateless adapter: it knows one backend's endpoint, headers,
request body and response shape. HTTP, retries and logging live in the
generate pipeline (:mod:`polyllm.core.llm`).
"""
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from polyllm.core.exceptions import EmptyResponse, MalformedResponse
from polyllm.schemas.prompt import Message


@runtime_checkable
class SupportsMessages(Protocol):
    """Provider can send a structured conversation instead of a single prompt."""

    def prepare_chat_request(self, messages: Sequence[Message], options: Mapping[str, Any]) -> bytes:
        ...


@runtime_checkable
class SupportsCustomEndpoint(Protocol):
    """Provider endpoint can be overridden (local or self-hosted servers)."""

    def set_endpoint(self, endpoint: str) -> None:
        ...


class Provider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, api_key: str, model: str):
        """
        Initialize provider.

        Args:
            api_key: API key for authentication
            model: Model name to use
        """
        self.api_key = api_key
        self.model = model

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name of the provider."""

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """URL the request is POSTed to."""

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def default_options(self) -> Dict[str, Any]:
        """Provider defaults; per-call options are merged over these."""
        return {}

    def merge_options(self, body: Dict[str, Any], options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        merged = dict(body)
        merged.update(self.default_options())
        merged.update({k: v for k, v in (options or {}).items() if v is not None})
        return merged

    @abstractmethod
    def prepare_request(self, prompt: str, options: Mapping[str, Any]) -> bytes:
        """
        Build the JSON request body.

        Args:
            prompt: Rendered prompt text
            options: Caller overrides, taking precedence over provider defaults

        Returns:
            Encoded request body
        """

    @abstractmethod
    def parse_response(self, body: bytes) -> str:
        """
        Extract the text answer from a response body.

        Raises:
            MalformedResponse: If the body cannot be decoded
            EmptyResponse: If the decoded body carries no usable text
        """

    @staticmethod
    def _encode(body: Dict[str, Any]) -> bytes:
        return json.dumps(body, ensure_ascii=False).encode("utf-8")

    def _decode(self, body: bytes) -> Dict[str, Any]:
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponse(f"error parsing {self.name} response: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponse(f"error parsing {self.name} response: expected a JSON object")
        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model='{self.model}')"


class ChatCompletionsProvider(Provider):
    """Provider speaking the OpenAI-compatible chat completions format."""

    default_endpoint: str = ""

    def __init__(self, api_key: str, model: str, endpoint: Optional[str] = None):
        super().__init__(api_key, model)
        self._endpoint = endpoint or self.default_endpoint

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @staticmethod
    def _messages(messages: Sequence[Message]) -> List[Dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in messages]

    def prepare_request(self, prompt: str, options: Mapping[str, Any]) -> bytes:
        return self.prepare_chat_request([Message(role="user", content=prompt)], options)

    def prepare_chat_request(self, messages: Sequence[Message], options: Mapping[str, Any]) -> bytes:
        body = {"model": self.model, "messages": self._messages(messages)}
        return self._encode(self.merge_options(body, options))

    def parse_response(self, body: bytes) -> str:
        data = self._decode(body)
        choices = data.get("choices") or []
        if not choices:
            raise EmptyResponse(f"empty response from {self.name} API")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content:
            raise EmptyResponse(f"empty response from {self.name} API")
        return content
