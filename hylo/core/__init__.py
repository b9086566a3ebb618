"""Core errors, constants and request validation."""

from .errors import (
    HyloError,
    ProviderError,
    ConfigurationError,
    ValidationError,
    RoutingError,
    NoProvidersAvailableError,
    NoProviderCapableError,
)

__all__ = [
    "HyloError",
    "ProviderError",
    "ConfigurationError",
    "ValidationError",
    "RoutingError",
    "NoProvidersAvailableError",
    "NoProviderCapableError",
]
