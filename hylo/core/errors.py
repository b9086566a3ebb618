"""Core exception hierarchy for Hylo.

This module defines the base exception classes used throughout Hylo.
All Hylo exceptions inherit from HyloError, enabling both specific
and broad exception handling.

Exception Hierarchy:
    HyloError (base)
    ├── ProviderError - LLM provider call issues (absorbed by fallback)
    │   ├── ProviderTimeoutError
    │   ├── ProviderRateLimitError
    │   ├── ProviderAuthError
    │   ├── ProviderUnavailableError
    │   ├── ProviderNetworkError
    │   └── ProviderCapacityError
    ├── ConfigurationError - Config issues (fail at construction)
    │   ├── MissingConfigError
    │   └── InvalidConfigError
    ├── ValidationError - Caller input issues (never retried)
    │   └── InvalidInputError
    └── RoutingError - No chain can be built
        ├── NoProvidersAvailableError
        └── NoProviderCapableError
"""

from typing import Optional, Dict, Any, List


class HyloError(Exception):
    """Base exception for all Hylo errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "PROVIDER_TIMEOUT")
        details: Optional dict with additional context
    """

    error_code: str = "HYLO_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dict for API responses."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


# Provider Errors
class ProviderError(HyloError):
    """Base class for LLM provider errors.

    Raised by provider adapters; the fallback executor converts these
    into attempt records instead of letting them reach the caller.
    """
    error_code = "PROVIDER_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        original_error: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        details.setdefault("provider", provider)
        super().__init__(message, details=details)
        self.original_error = original_error

    @property
    def provider(self) -> Optional[str]:
        return self.details.get("provider")


class ProviderTimeoutError(ProviderError):
    """Provider API call timed out."""
    error_code = "PROVIDER_TIMEOUT"
    retryable = True

    def __init__(self, provider: str, timeout_ms: int):
        super().__init__(
            f"{provider} call timed out after {timeout_ms}ms",
            provider=provider,
            details={"timeout_ms": timeout_ms},
        )


class ProviderRateLimitError(ProviderError):
    """Provider rate limit exceeded."""
    error_code = "PROVIDER_RATE_LIMIT"
    retryable = True

    def __init__(self, provider: str, retry_after: Optional[int] = None):
        msg = f"{provider} rate limit exceeded."
        if retry_after:
            msg += f" Retry after {retry_after} seconds."
        super().__init__(msg, provider=provider, details={"retry_after": retry_after})


class ProviderAuthError(ProviderError):
    """Provider authentication failed."""
    error_code = "PROVIDER_AUTH"

    def __init__(self, provider: str, key_name: str = "API_KEY"):
        super().__init__(
            f"{provider} authentication failed. Check your {key_name} environment variable.",
            provider=provider,
            details={"key_name": key_name},
        )


class ProviderUnavailableError(ProviderError):
    """Provider service is unavailable."""
    error_code = "PROVIDER_UNAVAILABLE"
    retryable = True

    def __init__(self, provider: str, status_code: Optional[int] = None, reason: str = ""):
        msg = f"{provider} service is currently unavailable."
        if status_code:
            msg += f" (HTTP {status_code})"
        if reason:
            msg += f" {reason}"
        super().__init__(msg, provider=provider, details={"status_code": status_code})


class ProviderNetworkError(ProviderError):
    """Could not reach the provider endpoint."""
    error_code = "PROVIDER_NETWORK"
    retryable = True

    def __init__(self, provider: str, reason: str = ""):
        msg = f"Network error contacting {provider}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, provider=provider)


class ProviderCapacityError(ProviderError):
    """Provider has no free request slots."""
    error_code = "PROVIDER_CAPACITY"

    def __init__(self, provider: str, in_flight: int, max_concurrent: int):
        super().__init__(
            f"{provider} is at capacity ({in_flight}/{max_concurrent} requests in flight)",
            provider=provider,
            details={"in_flight": in_flight, "max_concurrent": max_concurrent},
        )


# Configuration Errors
class ConfigurationError(HyloError):
    """Base class for configuration errors."""
    error_code = "CONFIG_ERROR"


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""
    error_code = "MISSING_CONFIG"

    def __init__(self, config_key: str, source: str = "environment"):
        super().__init__(
            f"Required configuration '{config_key}' not found in {source}.",
            details={"config_key": config_key, "source": source}
        )


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""
    error_code = "INVALID_CONFIG"

    def __init__(self, config_key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid value for '{config_key}': {reason}",
            details={"config_key": config_key, "value": str(value), "reason": reason}
        )


# Validation Errors
class ValidationError(HyloError):
    """Base class for validation errors."""
    error_code = "VALIDATION_ERROR"


class InvalidInputError(ValidationError):
    """User input is invalid."""
    error_code = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid input for '{field}': {reason}",
            details={"field": field, "reason": reason}
        )


# Routing Errors
class RoutingError(HyloError):
    """Base class for routing failures that leave nothing to execute."""
    error_code = "ROUTING_ERROR"


class NoProvidersAvailableError(RoutingError):
    """No enabled providers are registered."""
    error_code = "NO_PROVIDERS_AVAILABLE"

    def __init__(self, registered: int = 0):
        super().__init__(
            "No healthy providers available",
            details={"registered": registered}
        )


class NoProviderCapableError(RoutingError):
    """Every enabled provider reported itself unavailable."""
    error_code = "NO_PROVIDER_CAPABLE"

    def __init__(self, candidates: Optional[List[str]] = None):
        super().__init__(
            "No available providers found",
            details={"candidates": candidates or []}
        )
