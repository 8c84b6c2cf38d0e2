"""
LMStudio provider implementation for local OpenAI-compatible servers.
"""
from typing import Optional

from polyllm.core.providers.base import ChatCompletionsProvider


class LMStudioProvider(ChatCompletionsProvider):
    """
    LMStudio local server provider.

    Local instances often run without authentication, so an empty API key is
    accepted and the Authorization header is then omitted.
    """

    default_endpoint = "http://localhost:1234/v1/chat/completions"

    def __init__(self, api_key: str = "", model: str = "local-model", endpoint: Optional[str] = None):
        super().__init__(api_key, model, endpoint)

    @property
    def name(self) -> str:
        return "lmstudio"

    def set_endpoint(self, endpoint: str) -> None:
        self._endpoint = endpoint
