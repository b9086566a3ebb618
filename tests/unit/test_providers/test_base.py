"""Tests for shared provider bookkeeping: metrics, capacity, retries and status."""

import asyncio
import math
from concurrent.futures import ThreadPoolExecutor

import pytest
from hypothesis import given, settings, strategies as st

from hylo.core.errors import ProviderCapacityError, ProviderError, ProviderUnavailableError
from hylo.providers.base import ComplexityLevel, ProviderMetrics, ProviderName, ProviderStatus, TokenUsage

outcome_sequences = st.lists(
    st.tuples(st.sampled_from(["start", "success", "failure"]), st.floats(min_value=-10, max_value=5000)),
    max_size=60,
)


class TestProviderMetrics:

    def test_running_average_over_completed_requests(self):
        metrics = ProviderMetrics()
        metrics.record_start(1.0)
        metrics.record_start(2.0)
        metrics.record_success(100.0, tokens=10, cost_usd=0.01)
        metrics.record_failure(300.0)

        assert metrics.average_latency_ms == pytest.approx(200.0)
        assert metrics.error_rate == pytest.approx(0.5)
        assert metrics.availability == pytest.approx(0.5)
        assert metrics.total_tokens_processed == 10
        assert metrics.last_request_timestamp == 2.0

    @pytest.mark.parametrize("latency", [-5.0, float("nan"), float("inf")])
    def test_invalid_latency_clamped(self, latency, caplog):
        metrics = ProviderMetrics()
        metrics.record_start(0.0)
        metrics.record_success(latency)

        assert metrics.average_latency_ms == 0.0
        assert "clamped" in caplog.text

    def test_negative_tokens_and_cost_clamped(self):
        metrics = ProviderMetrics()
        metrics.record_start(0.0)
        metrics.record_success(10.0, tokens=-4, cost_usd=-1.0)

        assert metrics.total_tokens_processed == 0
        assert metrics.total_cost_usd == 0.0

    def test_fresh_metrics(self):
        metrics = ProviderMetrics()
        assert metrics.error_rate == 0.0
        assert metrics.availability == 1.0
        assert metrics.success_rate == 1.0

    @given(events=outcome_sequences)
    @settings(max_examples=100)
    def test_rates_stay_consistent(self, events):
        metrics = ProviderMetrics()
        in_flight = 0
        for kind, latency in events:
            if kind == "start":
                metrics.record_start(0.0)
                in_flight += 1
            elif in_flight:
                in_flight -= 1
                if kind == "success":
                    metrics.record_success(latency)
                else:
                    metrics.record_failure(latency)

            assert metrics.successful_requests + metrics.failed_requests <= metrics.request_count
            if metrics.request_count > 0:
                assert metrics.error_rate == pytest.approx(metrics.failed_requests / metrics.request_count)
            assert metrics.average_latency_ms >= 0
            assert math.isfinite(metrics.average_latency_ms)


class TestBaseLLMProvider:

    @pytest.mark.asyncio
    async def test_response_carries_usage_and_cost(self, make_provider, make_request):
        provider = make_provider(ProviderName.GROQ, content="hola")
        provider.cost_per_token = 0.5

        response = await provider.generate_response(make_request())

        assert response.content == "hola"
        assert response.provider == "groq"
        assert response.model == "groq-test"
        assert response.usage.total_tokens == 8
        assert response.cost_usd == pytest.approx(4.0)
        metrics = provider.get_metrics()
        assert metrics.successful_requests == 1
        assert metrics.total_cost_usd == pytest.approx(4.0)

    @pytest.mark.asyncio
    async def test_capacity_error_when_full(self, make_provider, make_request):
        provider = make_provider(ProviderName.GROQ, max_concurrent=1)
        provider._in_flight = 1

        with pytest.raises(ProviderCapacityError):
            await provider.generate_response(make_request())
        assert await provider.has_capacity() is False

    @pytest.mark.asyncio
    async def test_retryable_errors_retried_within_budget(self, make_provider, make_request):
        provider = make_provider(
            ProviderName.GEMINI,
            outcomes=[ProviderUnavailableError("gemini", 503), ProviderUnavailableError("gemini", 503)],
            content="third time",
            retry_attempts=2,
        )
        provider.retry_backoff_seconds = 0

        response = await provider.generate_response(make_request())

        assert response.content == "third time"
        assert provider.calls == 3
        assert provider.get_metrics().request_count == 1

    @pytest.mark.asyncio
    async def test_non_retryable_errors_raise_immediately(self, make_provider, make_request):
        provider = make_provider(
            ProviderName.GEMINI, outcomes=[ProviderError("bad request", provider="gemini")], retry_attempts=3
        )

        with pytest.raises(ProviderError):
            await provider.generate_response(make_request())
        assert provider.calls == 1
        assert provider.get_metrics().failed_requests == 1

    @pytest.mark.asyncio
    async def test_cancelled_call_recorded_as_failure(self, make_provider, make_request):
        provider = make_provider(ProviderName.GROQ, delay=5.0)
        task = asyncio.ensure_future(provider.generate_response(make_request()))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert provider.get_metrics().failed_requests == 1
        assert provider._in_flight == 0

    @pytest.mark.asyncio
    async def test_stream_ends_with_single_complete_chunk(self, make_provider, make_request):
        provider = make_provider(ProviderName.CEREBRAS, ComplexityLevel.HIGH, chunks=["a", "", "bc"])

        chunks = [c async for c in provider.generate_stream(make_request())]

        assert [c.content for c in chunks] == ["a", "bc", ""]
        assert [c.is_complete for c in chunks] == [False, False, True]
        assert chunks[-1].metadata["estimated_tokens"] == 1
        assert provider.get_metrics().successful_requests == 1

    def test_status_transitions(self, make_provider):
        provider = make_provider(ProviderName.GROQ)
        assert provider.get_status() == ProviderStatus.ACTIVE

        provider._metrics.record_start(0.0)
        provider._metrics.record_failure(10.0)
        assert provider.get_status() == ProviderStatus.DEGRADED

        provider.reset_metrics()
        assert provider.get_status() == ProviderStatus.ACTIVE

        provider.available = False
        assert provider.get_status() == ProviderStatus.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_disabled_profile_is_unavailable(self, make_provider):
        provider = make_provider(ProviderName.GROQ, enabled=False)
        assert await provider.is_available() is False

    def test_get_metrics_returns_copy(self, make_provider):
        provider = make_provider(ProviderName.GROQ)
        snapshot = provider.get_metrics()
        snapshot.request_count = 99
        assert provider.get_metrics().request_count == 0

    def test_metrics_consistent_under_concurrent_load(self, make_provider, make_request):
        provider = make_provider(ProviderName.GROQ, max_concurrent=1000)

        async def complete(request):
            await asyncio.sleep(0)
            if "fail" in request.query:
                raise ProviderUnavailableError("groq", reason="scripted")
            return "ok", TokenUsage(prompt_tokens=1, completion_tokens=1, total_tokens=2), "stop"

        provider._complete = complete

        async def call(query):
            try:
                await provider.generate_response(make_request(query))
            except ProviderError:
                return False
            return True

        async def burst(worker):
            queries = [f"fail {worker}-{i}" if i % 3 == 0 else f"ok {worker}-{i}" for i in range(60)]
            return await asyncio.gather(*(call(q) for q in queries))

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = [ok for batch in pool.map(lambda w: asyncio.run(burst(w)), range(8)) for ok in batch]

        metrics = provider.get_metrics()
        failed = results.count(False)
        assert failed == 8 * 20
        assert metrics.request_count == len(results) == 8 * 60
        assert metrics.successful_requests + metrics.failed_requests == metrics.request_count
        assert metrics.failed_requests == failed
        assert metrics.error_rate == pytest.approx(failed / metrics.request_count)
        assert metrics.total_tokens_processed == 2 * (len(results) - failed)
        assert metrics.capacity_utilization == 0.0
