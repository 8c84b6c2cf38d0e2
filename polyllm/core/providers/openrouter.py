"""
OpenRouter provider implementation.
"""
from typing import Dict, Optional

from polyllm.core.providers.base import ChatCompletionsProvider


class OpenRouterProvider(ChatCompletionsProvider):
    """OpenRouter API provider implementation."""

    default_endpoint = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(
        self,
        api_key: str,
        model: str = "mistralai/mistral-7b-instruct",
        site_url: Optional[str] = None,
        app_name: Optional[str] = None,
    ):
        """
        Initialize OpenRouter provider.

        Args:
            api_key: OpenRouter API key
            model: Model identifier (e.g., "mistralai/mistral-7b-instruct")
            site_url: Your site URL (optional, for better rate limits)
            app_name: Your app name (optional, for analytics)
        """
        super().__init__(api_key, model)
        self.site_url = site_url
        self.app_name = app_name

    @property
    def name(self) -> str:
        return "openrouter"

    def headers(self) -> Dict[str, str]:
        headers = super().headers()
        if self.site_url:
            headers["HTTP-Referer"] = self.site_url
        if self.app_name:
            headers["X-Title"] = self.app_name
        return headers
