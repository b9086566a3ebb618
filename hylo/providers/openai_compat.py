"""Shared adapter for vendors exposing an OpenAI-compatible chat API.

Groq and Cerebras both speak the chat completions protocol, so they reuse
the openai SDK pointed at their own base_url.
"""

import logging
from typing import AsyncIterator, Optional, Tuple

import openai
from openai import AsyncOpenAI

from hylo.core.errors import (
    MissingConfigError,
    ProviderAuthError,
    ProviderError,
    ProviderNetworkError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from .base import BaseLLMProvider, LLMRequest, ProviderProfile, TokenUsage

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(BaseLLMProvider):
    """Chat-completions adapter. Subclasses set the endpoint and key name."""

    base_url: str = ""
    api_key_env: str = ""

    def __init__(
        self,
        profile: ProviderProfile,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        cost_per_token: Optional[float] = None,
    ):
        super().__init__(profile, cost_per_token=cost_per_token)
        if profile.is_enabled and not api_key:
            raise MissingConfigError(self.api_key_env)

        self.api_key = api_key
        self.client = None
        if api_key:
            self.client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url or self.base_url,
                timeout=self._attempt_timeout_ms() / 1000,
                max_retries=0,
            )

    def _is_configured(self) -> bool:
        return self.client is not None

    def _payload(self, request: LLMRequest) -> dict:
        payload = {
            "model": self.profile.model,
            "messages": [{"role": "user", "content": request.query}],
        }
        options = request.options
        if options.max_tokens is not None:
            payload["max_tokens"] = options.max_tokens
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.stop_sequences:
            payload["stop"] = list(options.stop_sequences)
        return payload

    async def _complete(self, request: LLMRequest) -> Tuple[str, TokenUsage, Optional[str]]:
        try:
            response = await self.client.chat.completions.create(**self._payload(request))
        except openai.OpenAIError as e:
            raise self._map_error(e) from e

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content if choice and choice.message else None) or ""
        usage = TokenUsage()
        if getattr(response, "usage", None):
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )
        return content, usage, choice.finish_reason if choice else None

    async def _stream(self, request: LLMRequest) -> AsyncIterator[str]:
        try:
            stream = await self.client.chat.completions.create(
                **self._payload(request), stream=True
            )
            async for event in stream:
                if event.choices and event.choices[0].delta:
                    delta = event.choices[0].delta.content
                    if delta:
                        yield delta
        except openai.OpenAIError as e:
            raise self._map_error(e) from e

    def _map_error(self, error: Exception) -> ProviderError:
        """Translate an openai SDK exception into the provider error family."""
        name = self.name.value
        if isinstance(error, openai.APITimeoutError):
            return ProviderTimeoutError(name, self._attempt_timeout_ms())
        if isinstance(error, openai.APIConnectionError):
            return ProviderNetworkError(name, str(error))
        if isinstance(error, openai.RateLimitError):
            return ProviderRateLimitError(name)
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return ProviderAuthError(name, self.api_key_env)
        if isinstance(error, openai.APIStatusError) and error.status_code >= 500:
            return ProviderUnavailableError(name, status_code=error.status_code)
        return ProviderError(f"{name} request failed: {error}", provider=name, original_error=error)
