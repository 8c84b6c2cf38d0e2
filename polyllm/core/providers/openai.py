"""
OpenAI provider implementation.
"""
from polyllm.core.providers.base import ChatCompletionsProvider


class OpenAIProvider(ChatCompletionsProvider):
    """OpenAI chat completions API."""

    default_endpoint = "https://api.openai.com/v1/chat/completions"

    @property
    def name(self) -> str:
        return "openai"
