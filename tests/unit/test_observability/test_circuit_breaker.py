"""
Property-based tests for the per-provider circuit breaker.

Checks the CLOSED -> OPEN -> HALF_OPEN -> CLOSED state machine and that
an open circuit fails fast until its recovery timeout passes.
"""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from hylo.core import constants
from hylo.observability.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
)

# =============================================================================
# Test Strategies
# =============================================================================

provider_names = st.sampled_from(["groq", "gemini", "cerebras"])
failure_thresholds = st.integers(min_value=1, max_value=20)
recovery_timeouts = st.integers(min_value=1, max_value=300)
event_sequences = st.lists(st.sampled_from(["success", "failure"]), min_size=1, max_size=50)


class ManualClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


# =============================================================================
# Unit Tests for CircuitBreaker
# =============================================================================


class TestCircuitBreakerBasics:

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(provider="groq")

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.is_available is True

    def test_record_success_resets_failure_count(self):
        cb = CircuitBreaker(provider="groq")
        cb.record_failure("Error 1")
        cb.record_failure("Error 2")
        assert cb.failure_count == 2

        cb.record_success()
        assert cb.failure_count == 0

    def test_to_dict_serialization(self):
        cb = CircuitBreaker(provider="gemini")
        cb.record_failure("Test error")

        data = cb.to_dict()

        assert data["provider"] == "gemini"
        assert data["state"] == "closed"
        assert data["failure_count"] == 1
        assert data["failure_threshold"] == constants.CIRCUIT_BREAKER_FAILURE_THRESHOLD
        assert data["time_until_recovery"] is None


# =============================================================================
# State Machine
# =============================================================================


class TestCircuitBreakerStateMachine:

    @given(provider=provider_names, threshold=failure_thresholds)
    @settings(max_examples=50, suppress_health_check=[HealthCheck.too_slow])
    def test_closed_to_open_on_threshold_failures(self, provider, threshold):
        cb = CircuitBreaker(provider=provider, failure_threshold=threshold)

        for _ in range(threshold - 1):
            cb.record_failure("Error")
            assert cb.state == CircuitState.CLOSED

        cb.record_failure("Final error")
        assert cb.state == CircuitState.OPEN
        assert cb.is_available is False

    @given(provider=provider_names, timeout=recovery_timeouts)
    @settings(max_examples=50, suppress_health_check=[HealthCheck.too_slow])
    def test_open_to_half_open_after_timeout(self, provider, timeout):
        clock = ManualClock()
        cb = CircuitBreaker(
            provider=provider,
            failure_threshold=1,
            recovery_timeout=timeout,
            last_state_change=clock(),
            clock=clock,
        )
        cb.record_failure("Error")

        clock.advance(timeout - 1)
        assert cb.is_available is False
        assert cb.state == CircuitState.OPEN

        clock.advance(1)
        assert cb.is_available is True
        assert cb.state == CircuitState.HALF_OPEN

    def test_half_open_success_closes(self):
        clock = ManualClock()
        cb = CircuitBreaker("groq", failure_threshold=1, recovery_timeout=10,
                            last_state_change=clock(), clock=clock)
        cb.record_failure("Error")
        clock.advance(10)
        assert cb.is_available

        cb.record_success()

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_half_open_failure_reopens(self):
        clock = ManualClock()
        cb = CircuitBreaker("groq", failure_threshold=3, recovery_timeout=10,
                            last_state_change=clock(), clock=clock)
        for _ in range(3):
            cb.record_failure("Error")
        clock.advance(10)
        assert cb.is_available

        cb.record_failure("Still down")

        assert cb.state == CircuitState.OPEN
        assert cb.time_until_recovery == 10

    @given(events=event_sequences, threshold=failure_thresholds)
    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    def test_state_is_always_valid(self, events, threshold):
        cb = CircuitBreaker("cerebras", failure_threshold=threshold)
        consecutive = 0
        for event in events:
            if event == "success":
                cb.record_success()
                consecutive = 0
            else:
                cb.record_failure("Error")
                consecutive += 1
            if cb.state == CircuitState.CLOSED:
                assert consecutive < threshold
            if consecutive >= threshold:
                assert cb.state == CircuitState.OPEN


class TestCircuitBreakerRegistry:

    def test_circuits_created_on_first_use(self):
        registry = CircuitBreakerRegistry(failure_threshold=2, recovery_timeout=30)

        circuit = registry.get_circuit("groq")

        assert circuit is registry.get_circuit("groq")
        assert circuit.failure_threshold == 2
        assert circuit.recovery_timeout == 30

    def test_failures_isolated_per_provider(self):
        registry = CircuitBreakerRegistry(failure_threshold=1)
        registry.record_failure("groq", "down")

        assert registry.is_available("groq") is False
        assert registry.is_available("gemini") is True

    def test_reset_all(self):
        registry = CircuitBreakerRegistry(failure_threshold=1)
        registry.record_failure("groq")
        registry.record_failure("gemini")

        registry.reset_all()

        assert registry.is_available("groq")
        assert registry.is_available("gemini")
        assert set(registry.get_status()) == {"groq", "gemini"}

    def test_defaults_follow_constants(self, monkeypatch):
        monkeypatch.setattr(constants, "CIRCUIT_BREAKER_FAILURE_THRESHOLD", 9)
        assert CircuitBreakerRegistry().failure_threshold == 9
