"""
LLM provider adapters and the provider registry.
"""
from polyllm.core.providers.base import (
    ChatCompletionsProvider,
    Provider,
    SupportsCustomEndpoint,
    SupportsMessages,
)
from polyllm.core.providers.lmstudio import LMStudioProvider
from polyllm.core.providers.openai import OpenAIProvider
from polyllm.core.providers.openrouter import OpenRouterProvider
from polyllm.core.providers.registry import ProviderRegistry, default_registry
from polyllm.core.providers.tongyi import TongYiProvider
from polyllm.core.providers.zhipu import ZhiPuProvider
from polyllm.core.providers.zhipu_view import ZhiPuViewProvider

__all__ = [
    "ChatCompletionsProvider",
    "LMStudioProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "Provider",
    "ProviderRegistry",
    "SupportsCustomEndpoint",
    "SupportsMessages",
    "TongYiProvider",
    "ZhiPuProvider",
    "ZhiPuViewProvider",
    "default_registry",
]
