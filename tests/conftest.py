"""Pytest configuration and fixtures."""

import asyncio
from typing import AsyncIterator, List, Optional, Sequence

import pytest

from hylo.core import constants
from hylo.observability.circuit_breaker import CircuitBreakerRegistry
from hylo.observability.health_cache import HealthCache
from hylo.observability.recorder import InMemoryRecorder
from hylo.providers.base import (
    BaseLLMProvider,
    ComplexityLevel,
    LLMOptions,
    LLMRequest,
    ProviderName,
    ProviderProfile,
    RequestMetadata,
    TokenUsage,
)
from hylo.providers.registry import ProviderRegistry
from hylo.routing.complexity import ComplexityAnalyzer
from hylo.routing.engine import RoutingEngine
from hylo.routing.evaluator import CandidateEvaluator
from hylo.routing.fallback import FallbackExecutor
from hylo.services.routing_service import RoutingService


class FakeProvider(BaseLLMProvider):
    """Scripted adapter: no network, deterministic outcomes.

    ``outcomes`` is consumed one entry per vendor call; an Exception entry is
    raised, a string is returned as content. When exhausted, ``content`` is
    returned.
    """

    def __init__(
        self,
        profile: ProviderProfile,
        content: str = "ok",
        outcomes: Optional[Sequence] = None,
        delay: float = 0.0,
        chunks: Optional[List[str]] = None,
        available: bool = True,
    ):
        super().__init__(profile, cost_per_token=0.0)
        self.content = content
        self.outcomes = list(outcomes or [])
        self.delay = delay
        self.chunks = chunks
        self.available = available
        self.calls = 0

    def _is_configured(self) -> bool:
        return self.available

    def _next_outcome(self):
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else self.content
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def _complete(self, request: LLMRequest):
        if self.delay:
            await asyncio.sleep(self.delay)
        content = self._next_outcome()
        return content, TokenUsage(prompt_tokens=3, completion_tokens=5, total_tokens=8), "stop"

    async def _stream(self, request: LLMRequest) -> AsyncIterator[str]:
        if self.delay:
            await asyncio.sleep(self.delay)
        content = self._next_outcome()
        for piece in self.chunks if self.chunks is not None else [content]:
            yield piece


def _profile(
    name: ProviderName,
    preferred: ComplexityLevel,
    timeout_ms: int = 1000,
    max_concurrent: int = 10,
    retry_attempts: int = 0,
    enabled: bool = True,
) -> ProviderProfile:
    return ProviderProfile(
        name=name,
        preferred_complexity=preferred,
        max_concurrent_requests=max_concurrent,
        timeout_ms=timeout_ms,
        retry_attempts=retry_attempts,
        model=f"{name.value}-test",
        is_enabled=enabled,
    )


def _request(
    query: str = "Best restaurants in Tokyo",
    session_id: Optional[str] = None,
    user_preference: Optional[str] = None,
    **options,
) -> LLMRequest:
    return LLMRequest(
        query=query,
        options=LLMOptions(**options),
        metadata=RequestMetadata(
            request_id="req_test",
            timestamp=0,
            session_id=session_id,
            user_preference=user_preference,
        ),
    )


@pytest.fixture
def make_profile():
    return _profile


@pytest.fixture
def make_request():
    return _request


@pytest.fixture
def make_provider():
    """Factory: make_provider(name, preferred, content=..., outcomes=..., **profile_kwargs)."""

    def factory(name, preferred=ComplexityLevel.LOW, content="ok", outcomes=None, delay=0.0,
                chunks=None, available=True, **profile_kwargs):
        return FakeProvider(
            _profile(name, preferred, **profile_kwargs),
            content=content,
            outcomes=outcomes,
            delay=delay,
            chunks=chunks,
            available=available,
        )

    return factory


@pytest.fixture(autouse=True)
def reset_constants(monkeypatch):
    """Keep HYLO_* overrides from leaking between tests."""
    for key in list(constants.__dict__):
        if key.isupper():
            monkeypatch.setattr(constants, key, getattr(constants, key))
    yield


@pytest.fixture
def providers():
    """One fake per vendor: groq prefers low, gemini medium, cerebras high."""
    return {
        ProviderName.GROQ: FakeProvider(
            _profile(ProviderName.GROQ, ComplexityLevel.LOW, timeout_ms=1000), content="groq says hi"
        ),
        ProviderName.GEMINI: FakeProvider(
            _profile(ProviderName.GEMINI, ComplexityLevel.MEDIUM, timeout_ms=2000), content="gemini says hi"
        ),
        ProviderName.CEREBRAS: FakeProvider(
            _profile(ProviderName.CEREBRAS, ComplexityLevel.HIGH, timeout_ms=3000), content="cerebras says hi"
        ),
    }


@pytest.fixture
def registry(providers):
    registry = ProviderRegistry()
    for handle in providers.values():
        registry.register(handle.profile, handle)
    return registry


@pytest.fixture
def engine(registry):
    return RoutingEngine(registry, CandidateEvaluator(HealthCache(ttl_seconds=0)), ComplexityAnalyzer())


@pytest.fixture
def executor(registry):
    return FallbackExecutor(registry, CircuitBreakerRegistry(failure_threshold=3, recovery_timeout=60))


@pytest.fixture
def recorder():
    return InMemoryRecorder(batch_size=10, history_size=50)


@pytest.fixture
def service(engine, executor, recorder):
    return RoutingService(engine, executor, recorder)


@pytest.fixture
def mock_env(monkeypatch):
    """Provider keys for configuration tests."""
    test_env = {
        "GROQ_API_KEY": "gsk-test",
        "GEMINI_API_KEY": "gemini-test",
        "CEREBRAS_API_KEY": "csk-test",
    }
    for key, value in test_env.items():
        monkeypatch.setenv(key, value)
    return test_env
