"""
Shared fixtures: scripted HTTP transports and quiet debug sinks.
"""
import json
from typing import Any, List, Union

import httpx
import pytest

from polyllm.core.llm import LLM
from polyllm.core.providers.base import Provider
from polyllm.core.providers.openai import OpenAIProvider
from polyllm.utils.logging import DebugManager, NullLogger


def chat_body(content: str) -> dict:
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 15, "total_tokens": 25},
    }


def word_count(text: str) -> int:
    return len(text.split())


Scripted = Union[httpx.Response, dict, Exception]


class ScriptedTransport:
    """
    Mock transport handler replaying a script of responses.

    Dicts become 200 JSON responses, exceptions are raised. The last item is
    repeated once the script runs out.
    """

    def __init__(self, script: List[Scripted]):
        self.script = list(script)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, dict):
            return httpx.Response(200, json=item, request=request)
        return item

    def bodies(self) -> List[Any]:
        return [json.loads(r.content) for r in self.requests]


def make_llm(script: List[Scripted], provider: Provider = None, **kwargs: Any):
    transport = ScriptedTransport(script)
    kwargs.setdefault("retry_delay", 0)
    kwargs.setdefault("debug", DebugManager(NullLogger()))
    llm = LLM(
        provider or OpenAIProvider(api_key="test-api-key", model="test-model"),
        client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
        **kwargs,
    )
    return llm, transport


class RecordingLogger:
    """Logger collecting (level, message) pairs."""

    def __init__(self):
        self.records: List[tuple] = []

    def _record(self, level):
        def log(message, *args, **kwargs):
            self.records.append((level, message))
        return log

    def __getattr__(self, level):
        if level in ("debug", "info", "warning", "error"):
            return self._record(level)
        raise AttributeError(level)

    def messages(self, level: str) -> List[str]:
        return [m for lvl, m in self.records if lvl == level]


@pytest.fixture
def recording_logger():
    return RecordingLogger()
