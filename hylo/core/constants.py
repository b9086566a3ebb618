"""Central configuration constants for Hylo routing.

This module defines the configurable thresholds and settings used throughout
the routing engine. Constants can be overridden via environment variables
using the HYLO_* prefix convention.

Usage:
    from hylo.core import constants

    constants.load_config()
    if score <= constants.COMPLEXITY_LOW_THRESHOLD:
        ...

Environment Variables:
    HYLO_COMPLEXITY_LOW_THRESHOLD - Upper bound of "low" (default: 0.3)
    HYLO_COMPLEXITY_MEDIUM_THRESHOLD - Upper bound of "medium" (default: 0.7)
    HYLO_MAX_QUERY_LENGTH - Longest accepted query in characters (default: 50000)
    HYLO_DEFAULT_MAX_TOKENS - max_tokens when the caller sends none (default: 2000)
    HYLO_MAX_TOKENS_CAP - Hard cap on max_tokens (default: 4000)
    HYLO_HEALTH_CACHE_TTL - Seconds a health snapshot stays fresh (default: 30)
    HYLO_CIRCUIT_BREAKER_FAILURE_THRESHOLD - Failures before circuit opens (default: 5)
    HYLO_CIRCUIT_BREAKER_RECOVERY_TIMEOUT - Seconds before recovery attempt (default: 60)
    HYLO_RECORDER_BATCH_SIZE - Traces buffered before a flush (default: 100)
    HYLO_RECORDER_HISTORY_SIZE - Flushed traces kept in memory (default: 500)
    HYLO_LOG_LEVEL - Root log level for CLI and server (default: INFO)
"""

import os
from typing import Dict

from hylo.core.errors import InvalidConfigError

# =============================================================================
# Complexity Analysis
# =============================================================================

COMPLEXITY_LOW_THRESHOLD: float = 0.3
COMPLEXITY_MEDIUM_THRESHOLD: float = 0.7

# Must sum to 1.0
DEFAULT_FACTOR_WEIGHTS: Dict[str, float] = {
    "query_length": 0.20,
    "technical_terms": 0.25,
    "multi_step": 0.25,
    "context_depth": 0.15,
    "output_format": 0.15,
}

# Temperature that does not count as a contextual signal
DEFAULT_TEMPERATURE: float = 0.7

# =============================================================================
# Candidate Scoring
# =============================================================================

EXACT_MATCH_BONUS: float = 0.4

# Applied when exactly one of (provider preference, request level) is "medium"
PARTIAL_MATCH_BONUS: float = 0.2

NO_CAPACITY_PENALTY: float = 0.3

# Utilization at or above this means the provider has no capacity
CAPACITY_UTILIZATION_LIMIT: float = 0.95

# Error rate above this marks a provider degraded
DEGRADED_ERROR_RATE: float = 0.05

# USD per token
PROVIDER_TOKEN_COSTS: Dict[str, float] = {
    "groq": 0.0000003,
    "gemini": 0.0000005,
    "cerebras": 0.000001,
}

# =============================================================================
# Request Limits
# =============================================================================

MAX_QUERY_LENGTH: int = 50000
DEFAULT_MAX_TOKENS: int = 2000
MAX_TOKENS_CAP: int = 4000
MAX_STOP_SEQUENCES: int = 4

# =============================================================================
# Health and Resilience
# =============================================================================

HEALTH_CACHE_TTL: int = 30
CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5
CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = 60

# =============================================================================
# Observability
# =============================================================================

RECORDER_BATCH_SIZE: int = 100
RECORDER_HISTORY_SIZE: int = 500
LOG_LEVEL: str = "INFO"
LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# =============================================================================
# Helper Functions for Environment Variable Loading
# =============================================================================

def _get_env_int(key: str, default: int) -> int:
    """Get integer from environment variable with validation.

    Raises:
        InvalidConfigError: If value is not a valid non-negative integer
    """
    value = os.getenv(key)
    if value is None:
        return default

    try:
        result = int(value)
    except ValueError:
        raise InvalidConfigError(key, value, "must be an integer")
    if result < 0:
        raise InvalidConfigError(key, value, "must be non-negative")
    return result


def _get_env_float(key: str, default: float) -> float:
    """Get float from environment variable with validation.

    Raises:
        InvalidConfigError: If value is not a valid non-negative number
    """
    value = os.getenv(key)
    if value is None:
        return default

    try:
        result = float(value)
    except ValueError:
        raise InvalidConfigError(key, value, "must be a number")
    if result < 0:
        raise InvalidConfigError(key, value, "must be non-negative")
    return result


def _get_env_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.getenv(key, default)


def load_config() -> None:
    """Load configuration with environment variable overrides.

    Invalid values raise InvalidConfigError. Threshold ordering is checked
    here so a bad deployment fails at startup rather than per request.
    """
    global COMPLEXITY_LOW_THRESHOLD, COMPLEXITY_MEDIUM_THRESHOLD
    global MAX_QUERY_LENGTH, DEFAULT_MAX_TOKENS, MAX_TOKENS_CAP
    global HEALTH_CACHE_TTL
    global CIRCUIT_BREAKER_FAILURE_THRESHOLD, CIRCUIT_BREAKER_RECOVERY_TIMEOUT
    global RECORDER_BATCH_SIZE, RECORDER_HISTORY_SIZE, LOG_LEVEL

    low = _get_env_float("HYLO_COMPLEXITY_LOW_THRESHOLD", 0.3)
    medium = _get_env_float("HYLO_COMPLEXITY_MEDIUM_THRESHOLD", 0.7)
    if not 0.0 < low < medium < 1.0:
        raise InvalidConfigError(
            "HYLO_COMPLEXITY_MEDIUM_THRESHOLD",
            medium,
            f"thresholds must satisfy 0 < low ({low}) < medium < 1",
        )
    COMPLEXITY_LOW_THRESHOLD = low
    COMPLEXITY_MEDIUM_THRESHOLD = medium

    MAX_QUERY_LENGTH = _get_env_int("HYLO_MAX_QUERY_LENGTH", 50000)
    DEFAULT_MAX_TOKENS = _get_env_int("HYLO_DEFAULT_MAX_TOKENS", 2000)
    MAX_TOKENS_CAP = _get_env_int("HYLO_MAX_TOKENS_CAP", 4000)

    HEALTH_CACHE_TTL = _get_env_int("HYLO_HEALTH_CACHE_TTL", 30)
    CIRCUIT_BREAKER_FAILURE_THRESHOLD = _get_env_int(
        "HYLO_CIRCUIT_BREAKER_FAILURE_THRESHOLD", 5
    )
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT = _get_env_int(
        "HYLO_CIRCUIT_BREAKER_RECOVERY_TIMEOUT", 60
    )

    RECORDER_BATCH_SIZE = _get_env_int("HYLO_RECORDER_BATCH_SIZE", 100)
    RECORDER_HISTORY_SIZE = _get_env_int("HYLO_RECORDER_HISTORY_SIZE", 500)
    LOG_LEVEL = _get_env_str("HYLO_LOG_LEVEL", "INFO").upper()
