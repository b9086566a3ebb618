"""Tests for the routing decision maker."""

import asyncio
from unittest.mock import MagicMock

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from hylo.core.errors import NoProviderCapableError, NoProvidersAvailableError
from hylo.observability.health_cache import HealthCache
from hylo.providers.base import ComplexityLevel, ProviderName
from hylo.providers.registry import ProviderRegistry
from hylo.routing.complexity import ComplexityAnalysis, ComplexityAnalyzer
from hylo.routing.engine import RoutingEngine, confidence_phrase
from hylo.routing.evaluator import CandidateEvaluator


def high_complexity():
    return ComplexityAnalysis(level=ComplexityLevel.HIGH, score=0.85, factors=[])


def build_engine(*handles):
    registry = ProviderRegistry()
    for handle in handles:
        registry.register(handle.profile, handle)
    return RoutingEngine(registry, CandidateEvaluator(HealthCache(ttl_seconds=0)))


class TestRoute:

    @pytest.mark.asyncio
    async def test_exact_match_wins_and_chain_orders_by_timeout(self, engine, make_request):
        decision = await engine.route(make_request(), high_complexity())

        assert decision.selected_provider == "cerebras"
        assert decision.fallback_chain == ["groq", "gemini"]
        assert decision.complexity_score == 0.85
        assert [c.name for c in decision.candidate_providers][0] == "cerebras"

    @pytest.mark.asyncio
    async def test_exact_match_fallback_precedes_faster_mismatch(self, make_provider, make_request):
        engine = build_engine(
            make_provider(ProviderName.GEMINI, ComplexityLevel.MEDIUM, timeout_ms=500),
            make_provider(ProviderName.CEREBRAS, ComplexityLevel.HIGH, timeout_ms=5000),
            make_provider(ProviderName.GROQ, ComplexityLevel.HIGH, timeout_ms=4000, available=False),
        )
        decision = await engine.route(make_request(), high_complexity())

        assert decision.selected_provider == "cerebras"
        # groq is unavailable right now but still an exact match
        assert decision.fallback_chain == ["groq", "gemini"]

    @pytest.mark.asyncio
    async def test_low_query_goes_to_fast_provider(self, engine, make_request):
        decision = await engine.route(make_request("Best restaurants in Tokyo"))

        assert decision.selected_provider == "groq"
        assert decision.complexity.level == ComplexityLevel.LOW
        assert "groq selected for low-complexity request" in decision.reasoning

    @pytest.mark.asyncio
    async def test_all_disabled_raises_before_analysis(self, make_provider, make_request):
        engine = build_engine(
            make_provider(ProviderName.GROQ, ComplexityLevel.LOW, enabled=False),
            make_provider(ProviderName.GEMINI, ComplexityLevel.MEDIUM, enabled=False),
            make_provider(ProviderName.CEREBRAS, ComplexityLevel.HIGH, enabled=False),
        )
        engine.analyzer = MagicMock(spec=ComplexityAnalyzer)

        with pytest.raises(NoProvidersAvailableError) as exc_info:
            await engine.route(make_request())

        engine.analyzer.analyze.assert_not_called()
        assert exc_info.value.details["registered"] == 3

    @pytest.mark.asyncio
    async def test_empty_registry_raises(self, make_request):
        with pytest.raises(NoProvidersAvailableError):
            await build_engine().route(make_request())

    @pytest.mark.asyncio
    async def test_all_unavailable_raises_no_capable(self, make_provider, make_request):
        engine = build_engine(
            make_provider(ProviderName.GROQ, ComplexityLevel.LOW, available=False),
            make_provider(ProviderName.GEMINI, ComplexityLevel.MEDIUM, available=False),
        )
        with pytest.raises(NoProviderCapableError):
            await engine.route(make_request())

    @pytest.mark.asyncio
    async def test_full_providers_used_as_last_resort(self, make_provider, make_request):
        groq = make_provider(ProviderName.GROQ, ComplexityLevel.LOW, max_concurrent=1)
        groq._in_flight = 1
        engine = build_engine(groq)

        decision = await engine.route(make_request())

        assert decision.selected_provider == "groq"
        assert decision.fallback_chain == []

    @pytest.mark.asyncio
    async def test_provider_with_capacity_preferred_over_full_one(self, make_provider, make_request):
        cerebras = make_provider(ProviderName.CEREBRAS, ComplexityLevel.HIGH, max_concurrent=1)
        cerebras._in_flight = 1
        engine = build_engine(cerebras, make_provider(ProviderName.GROQ, ComplexityLevel.LOW))

        decision = await engine.route(make_request(), high_complexity())

        assert decision.selected_provider == "groq"
        assert decision.fallback_chain == ["cerebras"]

    @given(
        level=st.sampled_from(list(ComplexityLevel)),
        timeouts=st.lists(st.integers(min_value=100, max_value=60000), min_size=3, max_size=3),
    )
    @settings(max_examples=30, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_chain_never_contains_primary(self, make_provider, make_request, level, timeouts):
        engine = build_engine(
            make_provider(ProviderName.GROQ, ComplexityLevel.LOW, timeout_ms=timeouts[0]),
            make_provider(ProviderName.GEMINI, ComplexityLevel.MEDIUM, timeout_ms=timeouts[1]),
            make_provider(ProviderName.CEREBRAS, ComplexityLevel.HIGH, timeout_ms=timeouts[2]),
        )
        complexity = ComplexityAnalysis(level=level, score=0.5, factors=[])

        decision = asyncio.run(engine.route(make_request(), complexity))

        assert decision.selected_provider not in decision.fallback_chain
        assert len(decision.fallback_chain) == 2


class TestConfidencePhrase:

    @pytest.mark.parametrize(
        "score,prefix",
        [(1.4, "High confidence"), (0.6, "Moderate confidence"), (0.2, "Lower confidence")],
    )
    def test_bands(self, score, prefix):
        assert confidence_phrase(score).startswith(prefix)
