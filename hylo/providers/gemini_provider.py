"""Google Gemini provider: balanced option for medium-complexity requests.

Uses the google-genai async client (``client.aio``) so calls never block
the event loop.
"""

import logging
from typing import AsyncIterator, Optional, Tuple

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from hylo.core.errors import (
    MissingConfigError,
    ProviderAuthError,
    ProviderError,
    ProviderNetworkError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from .base import (
    BaseLLMProvider,
    ComplexityLevel,
    LLMRequest,
    ProviderName,
    ProviderProfile,
    TokenUsage,
)

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = ProviderProfile(
    name=ProviderName.GEMINI,
    preferred_complexity=ComplexityLevel.MEDIUM,
    max_concurrent_requests=15,
    timeout_ms=20000,
    retry_attempts=3,
    model="gemini-1.5-flash",
)


class GeminiProvider(BaseLLMProvider):
    """Google Gemini implementation of the routing capability interface."""

    api_key_env = "GEMINI_API_KEY"

    def __init__(self, api_key: Optional[str] = None, profile: ProviderProfile = DEFAULT_PROFILE):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google Gemini API key
            profile: Routing profile (defaults to the medium-complexity profile)

        Raises:
            MissingConfigError: If the provider is enabled without an API key
        """
        super().__init__(profile)
        if profile.is_enabled and not api_key:
            raise MissingConfigError(self.api_key_env)

        self.client = None
        if api_key:
            self.client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=self._attempt_timeout_ms()),
            )

    def _is_configured(self) -> bool:
        return self.client is not None

    def _config(self, request: LLMRequest) -> types.GenerateContentConfig:
        options = request.options
        return types.GenerateContentConfig(
            max_output_tokens=options.max_tokens,
            temperature=options.temperature,
            stop_sequences=list(options.stop_sequences) or None,
        )

    async def _complete(self, request: LLMRequest) -> Tuple[str, TokenUsage, Optional[str]]:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.profile.model,
                contents=request.query,
                config=self._config(request),
            )
        except (genai_errors.APIError, httpx.TransportError) as e:
            raise self._map_error(e) from e

        usage = TokenUsage()
        meta = getattr(response, "usage_metadata", None)
        if meta:
            usage = TokenUsage(
                prompt_tokens=meta.prompt_token_count or 0,
                completion_tokens=meta.candidates_token_count or 0,
                total_tokens=meta.total_token_count or 0,
            )

        finish_reason = None
        if response.candidates and response.candidates[0].finish_reason:
            finish_reason = str(response.candidates[0].finish_reason)
        return response.text or "", usage, finish_reason

    async def _stream(self, request: LLMRequest) -> AsyncIterator[str]:
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=self.profile.model,
                contents=request.query,
                config=self._config(request),
            )
            async for chunk in stream:
                if chunk.text:
                    yield chunk.text
        except (genai_errors.APIError, httpx.TransportError) as e:
            raise self._map_error(e) from e

    def _map_error(self, error: Exception) -> ProviderError:
        """Translate a google-genai or transport exception into the provider error family."""
        name = self.name.value
        if isinstance(error, httpx.TimeoutException):
            return ProviderTimeoutError(name, self._attempt_timeout_ms())
        if isinstance(error, httpx.TransportError):
            return ProviderNetworkError(name, str(error) or type(error).__name__)
        if error.code == 429:
            return ProviderRateLimitError(name)
        if error.code in (401, 403):
            return ProviderAuthError(name, self.api_key_env)
        if isinstance(error, genai_errors.ServerError):
            return ProviderUnavailableError(name, status_code=error.code)
        return ProviderError(f"{name} request failed: {error}", provider=name, original_error=error)
