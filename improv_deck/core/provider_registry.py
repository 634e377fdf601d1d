"""
Provider registry for dependency injection.
Maps provider names to factories so the pipeline can be assembled from configuration.
"""

import os
from typing import Any, Callable, Dict, List

from config import IMAGE_MODEL, OPENAI_IMAGE_MODEL, OPENAI_IMAGE_SIZE, TEXT_MODEL

# Environment variable holding each provider's API key
PROVIDER_API_KEYS = {
    "gemini": "GOOGLE_API_KEY",
    "imagen": "GOOGLE_API_KEY",
    "openai": "OPENAI_API_KEY",
}


class ProviderRegistry:
    """
    Registry of provider factories.
    Factories are called lazily so unused providers never build SDK clients.
    """

    def __init__(self):
        """Initialize empty registry."""
        self._factories: Dict[str, Callable[[], Any]] = {}

    def register(self, name: str, factory: Callable[[], Any]) -> None:
        """
        Register a provider factory.

        Args:
            name: Provider name/identifier
            factory: Zero-argument callable returning a provider instance
        """
        self._factories[name] = factory

    def get(self, name: str) -> Any:
        """
        Build the provider registered under name.

        Raises:
            KeyError: If provider not found
        """
        if name not in self._factories:
            raise KeyError(f"Provider '{name}' not found in registry. Available providers: {list(self._factories.keys())}")
        return self._factories[name]()

    def has(self, name: str) -> bool:
        return name in self._factories

    def names(self) -> List[str]:
        return list(self._factories.keys())


def create_default_provider_registry() -> ProviderRegistry:
    """
    Create the registry with the built-in text and image providers.

    Returns:
        ProviderRegistry with "gemini", "imagen" and "openai" registered
    """
    registry = ProviderRegistry()

    # Lazy import keeps SDK client construction out of module import
    from improv_deck.core.providers import GeminiTextProvider, ImagenImageProvider, OpenAIImageProvider

    registry.register(
        "gemini",
        lambda: GeminiTextProvider(api_key=os.getenv(PROVIDER_API_KEYS["gemini"]), model=TEXT_MODEL),
    )
    registry.register(
        "imagen",
        lambda: ImagenImageProvider(api_key=os.getenv(PROVIDER_API_KEYS["imagen"]), model=IMAGE_MODEL),
    )
    registry.register(
        "openai",
        lambda: OpenAIImageProvider(
            api_key=os.getenv(PROVIDER_API_KEYS["openai"]),
            model=OPENAI_IMAGE_MODEL,
            size=OPENAI_IMAGE_SIZE,
        ),
    )
    return registry
