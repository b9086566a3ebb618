"""Configuration management for Hylo routing."""

import math
import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hylo.core import constants
from hylo.core.errors import InvalidConfigError
from hylo.providers.base import ProviderName

# Load .env file
load_dotenv()

FACTOR_TYPES = tuple(constants.DEFAULT_FACTOR_WEIGHTS.keys())


class ProviderConfig(BaseModel):
    """Per-vendor credentials and overrides.

    Unset overrides fall back to the adapter's default profile.
    """

    model_config = ConfigDict(validate_default=True)

    name: ProviderName = Field(description="Provider identifier")
    api_key: Optional[str] = Field(default=None, description="Vendor API key")
    enabled: bool = Field(default=True, description="Route requests to this provider")
    model: Optional[str] = Field(default=None, description="Override the vendor model name")
    base_url: Optional[str] = Field(default=None, description="Override the API endpoint")
    timeout_ms: Optional[int] = Field(default=None, gt=0, description="Per-call deadline in ms")
    max_concurrent_requests: Optional[int] = Field(default=None, gt=0, description="Request slots")

    @field_validator("api_key", mode="before")
    @classmethod
    def blank_key_is_missing(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def from_env(cls, name: ProviderName) -> "ProviderConfig":
        prefix = name.value.upper()
        timeout = os.getenv(f"{prefix}_TIMEOUT_MS")
        max_concurrent = os.getenv(f"{prefix}_MAX_CONCURRENT")
        return cls(
            name=name,
            api_key=os.getenv(f"{prefix}_API_KEY"),
            enabled=os.getenv(f"ENABLE_{prefix}", "true").lower() != "false",
            model=os.getenv(f"{prefix}_MODEL"),
            base_url=os.getenv(f"{prefix}_BASE_URL"),
            timeout_ms=int(timeout) if timeout else None,
            max_concurrent_requests=int(max_concurrent) if max_concurrent else None,
        )


class RoutingConfig(BaseModel):
    """Complexity weights, thresholds and resilience settings."""

    factor_weights: Dict[str, float] = Field(
        default_factory=lambda: dict(constants.DEFAULT_FACTOR_WEIGHTS),
        description="Weight per complexity factor; must sum to 1.0",
    )
    low_threshold: float = Field(default=constants.COMPLEXITY_LOW_THRESHOLD)
    medium_threshold: float = Field(default=constants.COMPLEXITY_MEDIUM_THRESHOLD)
    health_cache_ttl: int = Field(default=constants.HEALTH_CACHE_TTL, ge=0)
    circuit_breaker_failure_threshold: int = Field(
        default=constants.CIRCUIT_BREAKER_FAILURE_THRESHOLD, ge=1
    )
    circuit_breaker_recovery_timeout: int = Field(
        default=constants.CIRCUIT_BREAKER_RECOVERY_TIMEOUT, ge=0
    )

    @field_validator("factor_weights")
    @classmethod
    def validate_weights(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Weights must cover every factor, lie in [0,1] and sum to 1.0."""
        if set(v) != set(FACTOR_TYPES):
            raise ValueError(f"factor_weights must define exactly {', '.join(FACTOR_TYPES)}")
        for key, weight in v.items():
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"weight for {key} must be within [0, 1]")
        if not math.isclose(sum(v.values()), 1.0, abs_tol=1e-6):
            raise ValueError(f"factor_weights must sum to 1.0 (got {sum(v.values()):.4f})")
        return v

    @model_validator(mode="after")
    def validate_thresholds(self) -> "RoutingConfig":
        if not 0.0 < self.low_threshold < self.medium_threshold < 1.0:
            raise ValueError("thresholds must satisfy 0 < low_threshold < medium_threshold < 1")
        return self


class ServerConfig(BaseModel):
    """Configuration for the HTTP server."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=5000, description="Bind port")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="Origins allowed by CORS",
    )
    debug: bool = Field(default=False, description="Enable Flask debug mode")


class AppConfig(BaseModel):
    """Main application configuration."""

    providers: Dict[ProviderName, ProviderConfig] = Field(default_factory=dict)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: str = Field(default="INFO", description="Logging level")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Load configuration from environment variables.

        Environment variable mapping:
        - {GROQ,GEMINI,CEREBRAS}_API_KEY: vendor credentials
        - ENABLE_{GROQ,GEMINI,CEREBRAS}: "false" disables the provider
        - {GROQ,GEMINI,CEREBRAS}_MODEL: vendor model override
        - HYLO_HOST / HYLO_PORT / HYLO_CORS_ORIGINS: HTTP server
        - HYLO_* routing constants (see hylo.core.constants)

        Raises:
            InvalidConfigError: If any value fails validation
        """
        constants.load_config()
        try:
            providers = {name: ProviderConfig.from_env(name) for name in ProviderName}
            routing = RoutingConfig(
                low_threshold=constants.COMPLEXITY_LOW_THRESHOLD,
                medium_threshold=constants.COMPLEXITY_MEDIUM_THRESHOLD,
                health_cache_ttl=constants.HEALTH_CACHE_TTL,
                circuit_breaker_failure_threshold=constants.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
                circuit_breaker_recovery_timeout=constants.CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
            )
            origins = os.getenv("HYLO_CORS_ORIGINS")
            server = ServerConfig(
                host=os.getenv("HYLO_HOST", "127.0.0.1"),
                port=int(os.getenv("HYLO_PORT", "5000")),
                debug=os.getenv("HYLO_DEBUG", "false").lower() == "true",
                **({"cors_origins": [o.strip() for o in origins.split(",") if o.strip()]} if origins else {}),
            )
        except ValueError as e:
            raise InvalidConfigError("environment", "", str(e)) from e

        return cls(
            providers=providers,
            routing=routing,
            server=server,
            log_level=constants.LOG_LEVEL,
        )

    def provider(self, name: ProviderName) -> ProviderConfig:
        return self.providers.get(name) or ProviderConfig(name=name, enabled=False)
