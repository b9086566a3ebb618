"""Provider abstraction for multi-vendor LLM routing."""

from typing import Union

from .base import (
    BaseLLMProvider,
    ComplexityLevel,
    LLMOptions,
    LLMProvider,
    LLMRequest,
    LLMResponse,
    ProviderMetrics,
    ProviderName,
    ProviderProfile,
    ProviderStatus,
    RequestMetadata,
    StreamChunk,
    TokenUsage,
)
from .cerebras_provider import CerebrasProvider
from .gemini_provider import GeminiProvider
from .groq_provider import GroqProvider
from .registry import ProviderRegistry, build_registry


def create_provider(provider_type: Union[str, ProviderName], **kwargs) -> LLMProvider:
    """
    Factory function to create the appropriate provider instance.

    Args:
        provider_type: "groq", "gemini" or "cerebras"
        **kwargs: Provider-specific configuration

    Returns:
        Initialized provider instance

    Raises:
        ValueError: If provider_type is not supported
    """
    name = ProviderName(provider_type)
    if name == ProviderName.GROQ:
        return GroqProvider(**kwargs)
    elif name == ProviderName.GEMINI:
        return GeminiProvider(**kwargs)
    elif name == ProviderName.CEREBRAS:
        return CerebrasProvider(**kwargs)
    raise ValueError(f"Unsupported provider type: {provider_type}")


__all__ = [
    "BaseLLMProvider",
    "ComplexityLevel",
    "LLMOptions",
    "LLMProvider",
    "LLMRequest",
    "LLMResponse",
    "ProviderMetrics",
    "ProviderName",
    "ProviderProfile",
    "ProviderStatus",
    "RequestMetadata",
    "StreamChunk",
    "TokenUsage",
    "CerebrasProvider",
    "GeminiProvider",
    "GroqProvider",
    "ProviderRegistry",
    "build_registry",
    "create_provider",
]
