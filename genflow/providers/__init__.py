from .base import ProviderCapabilities, ProviderClient, ProviderRegistry
from .fal_images import FalProvider
from .openai_images import OpenAIProvider
from .openai_text import OpenAITextProvider
from .replicate_images import ReplicateProvider
from .replicate_text import ReplicateTextProvider
from .stub import StubProvider

IMAGE_PROVIDERS = (OpenAIProvider, ReplicateProvider, FalProvider, StubProvider)
TEXT_PROVIDERS = (OpenAITextProvider, ReplicateTextProvider)


def build_registry() -> ProviderRegistry:
    registry = ProviderRegistry()
    for cls in (*IMAGE_PROVIDERS, *TEXT_PROVIDERS):
        registry.register(cls)
    return registry


__all__ = [
    "FalProvider",
    "OpenAIProvider",
    "OpenAITextProvider",
    "ProviderCapabilities",
    "ProviderClient",
    "ProviderRegistry",
    "ReplicateProvider",
    "ReplicateTextProvider",
    "StubProvider",
    "build_registry",
]
