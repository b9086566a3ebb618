"""Cerebras provider: large-context inference for high-complexity requests."""

from typing import Optional

from .base import ComplexityLevel, ProviderName, ProviderProfile
from .openai_compat import OpenAICompatibleProvider

DEFAULT_PROFILE = ProviderProfile(
    name=ProviderName.CEREBRAS,
    preferred_complexity=ComplexityLevel.HIGH,
    max_concurrent_requests=10,
    timeout_ms=30000,
    retry_attempts=3,
    model="llama3.1-70b",
)


class CerebrasProvider(OpenAICompatibleProvider):
    base_url = "https://api.cerebras.ai/v1"
    api_key_env = "CEREBRAS_API_KEY"

    def __init__(
        self,
        api_key: Optional[str] = None,
        profile: ProviderProfile = DEFAULT_PROFILE,
        base_url: Optional[str] = None,
    ):
        super().__init__(profile, api_key=api_key, base_url=base_url)
