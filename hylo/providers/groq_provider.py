"""Groq provider: fastest responses, tuned for low-complexity requests."""

from typing import Optional

from .base import ComplexityLevel, ProviderName, ProviderProfile
from .openai_compat import OpenAICompatibleProvider

DEFAULT_PROFILE = ProviderProfile(
    name=ProviderName.GROQ,
    preferred_complexity=ComplexityLevel.LOW,
    max_concurrent_requests=20,
    timeout_ms=10000,
    retry_attempts=2,
    model="llama-3.1-70b-versatile",
)


class GroqProvider(OpenAICompatibleProvider):
    """Groq chat completions via the OpenAI-compatible endpoint."""

    base_url = "https://api.groq.com/openai/v1"
    api_key_env = "GROQ_API_KEY"

    def __init__(
        self,
        api_key: Optional[str] = None,
        profile: ProviderProfile = DEFAULT_PROFILE,
        base_url: Optional[str] = None,
    ):
        super().__init__(profile, api_key=api_key, base_url=base_url)
