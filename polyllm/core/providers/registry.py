"""
Provider registry for creating LLM provider instances by name.
"""
from typing import Any, Callable, Dict, List

from polyllm.core.exceptions import UnknownProvider
from polyllm.core.providers.base import Provider
from polyllm.core.providers.lmstudio import LMStudioProvider
from polyllm.core.providers.openai import OpenAIProvider
from polyllm.core.providers.openrouter import OpenRouterProvider
from polyllm.core.providers.tongyi import TongYiProvider
from polyllm.core.providers.zhipu import ZhiPuProvider
from polyllm.core.providers.zhipu_view import ZhiPuViewProvider
from polyllm.utils.logging import get_logger

logger = get_logger(__name__)

ProviderConstructor = Callable[..., Provider]

BUILTIN_PROVIDERS: Dict[str, ProviderConstructor] = {
    "openai": OpenAIProvider,
    "openrouter": OpenRouterProvider,
    "lmstudio": LMStudioProvider,
    "zhipu": ZhiPuProvider,
    "tongyi": TongYiProvider,
    "zhipu_view": ZhiPuViewProvider,
}


class ProviderRegistry:
    """
    Mapping from provider name to constructor.

    Registration is last-writer-wins: registering an existing name silently
    replaces its constructor.
    """

    def __init__(self) -> None:
        self._constructors: Dict[str, ProviderConstructor] = {}

    def register(self, name: str, constructor: ProviderConstructor) -> None:
        """
        Register a provider constructor.

        Args:
            name: Name to register the provider under
            constructor: Callable accepting ``api_key`` and ``model`` keywords
        """
        if name in self._constructors:
            logger.debug(f"Replacing provider constructor for '{name}'")
        self._constructors[name] = constructor

    def resolve(self, name: str, *, api_key: str, model: str, **kwargs: Any) -> Provider:
        """
        Create a provider instance.

        Args:
            name: Registered provider name
            api_key: API key for the provider
            model: Model name
            **kwargs: Provider-specific constructor arguments

        Returns:
            Provider instance

        Raises:
            UnknownProvider: If the name was never registered
        """
        try:
            constructor = self._constructors[name]
        except KeyError:
            raise UnknownProvider(name, self.names()) from None
        return constructor(api_key=api_key, model=model, **kwargs)

    def names(self) -> List[str]:
        return sorted(self._constructors)

    def __contains__(self, name: object) -> bool:
        return name in self._constructors


def default_registry() -> ProviderRegistry:
    """Registry pre-loaded with every built-in provider."""
    registry = ProviderRegistry()
    for name, constructor in BUILTIN_PROVIDERS.items():
        registry.register(name, constructor)
    return registry


__all__ = ["ProviderRegistry", "ProviderConstructor", "BUILTIN_PROVIDERS", "default_registry"]
