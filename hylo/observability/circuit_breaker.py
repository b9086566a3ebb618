"""Circuit breaker for provider resilience.

Provides:
- CircuitState enum for state machine states (CLOSED, OPEN, HALF_OPEN)
- CircuitBreaker dataclass for a single provider
- CircuitBreakerRegistry for managing the circuits of all providers

The fallback executor consults the registry before each attempt: an open
circuit means the provider is skipped without spending a call on it.

Usage:
    from hylo.observability.circuit_breaker import CircuitBreakerRegistry

    breakers = CircuitBreakerRegistry()
    if breakers.is_available("groq"):
        try:
            result = await provider.generate_response(request)
            breakers.record_success("groq")
        except ProviderError as e:
            breakers.record_failure("groq", str(e))
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from hylo.core import constants

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class CircuitState(Enum):
    """Circuit breaker states.

    State machine:
        CLOSED -> OPEN: After failure_threshold consecutive failures
        OPEN -> HALF_OPEN: After recovery_timeout seconds
        HALF_OPEN -> CLOSED: On successful request
        HALF_OPEN -> OPEN: On failed request
    """
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Circuit breaker for one provider.

    Attributes:
        provider: Provider name (e.g., "groq")
        state: Current circuit state
        failure_count: Consecutive failure count
        last_failure_time: Time of last failure
        last_state_change: Time of last state transition
        failure_threshold: Failures before opening circuit
        recovery_timeout: Seconds before trying half-open
        clock: Time source, replaceable in tests
    """
    provider: str
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: Optional[datetime] = None
    last_state_change: datetime = field(default_factory=_utc_now)
    failure_threshold: int = constants.CIRCUIT_BREAKER_FAILURE_THRESHOLD
    recovery_timeout: int = constants.CIRCUIT_BREAKER_RECOVERY_TIMEOUT
    clock: Callable[[], datetime] = field(default=_utc_now, repr=False, compare=False)

    @property
    def is_available(self) -> bool:
        """True when requests may be attempted (CLOSED or HALF_OPEN)."""
        self._check_recovery()
        return self.state != CircuitState.OPEN

    @property
    def time_until_recovery(self) -> Optional[int]:
        if self.state != CircuitState.OPEN:
            return None
        elapsed = (self.clock() - self.last_state_change).total_seconds()
        return max(0, int(self.recovery_timeout - elapsed))

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.CLOSED)
            logger.info(f"Circuit CLOSED for {self.provider} - recovery successful")
        self.failure_count = 0

    def record_failure(self, error: str = "") -> None:
        self.failure_count += 1
        self.last_failure_time = self.clock()

        if self.state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
            logger.warning(f"Circuit OPEN (recovery failed) for {self.provider}: {error}")
        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            self._transition_to(CircuitState.OPEN)
            logger.warning(
                f"Circuit OPEN (threshold {self.failure_threshold} reached) "
                f"for {self.provider}: {error}"
            )

    def _check_recovery(self) -> None:
        if self.state != CircuitState.OPEN:
            return
        elapsed = (self.clock() - self.last_state_change).total_seconds()
        if elapsed >= self.recovery_timeout:
            self._transition_to(CircuitState.HALF_OPEN)
            logger.info(
                f"Circuit HALF_OPEN for {self.provider} - "
                f"testing recovery after {self.recovery_timeout}s"
            )

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self.state
        self.state = new_state
        self.last_state_change = self.clock()
        if new_state == CircuitState.CLOSED:
            self.failure_count = 0
        logger.debug(f"Circuit {self.provider}: {old_state.value} -> {new_state.value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": (
                self.last_failure_time.isoformat() if self.last_failure_time else None
            ),
            "last_state_change": self.last_state_change.isoformat(),
            "time_until_recovery": self.time_until_recovery,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
        }


class CircuitBreakerRegistry:
    """Circuit breakers for all providers, created on first use."""

    def __init__(
        self,
        failure_threshold: Optional[int] = None,
        recovery_timeout: Optional[int] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.circuits: Dict[str, CircuitBreaker] = {}
        self.failure_threshold = (
            constants.CIRCUIT_BREAKER_FAILURE_THRESHOLD if failure_threshold is None else failure_threshold
        )
        self.recovery_timeout = (
            constants.CIRCUIT_BREAKER_RECOVERY_TIMEOUT if recovery_timeout is None else recovery_timeout
        )
        self.clock = clock
        self._lock = threading.Lock()

    def get_circuit(self, provider: str) -> CircuitBreaker:
        with self._lock:
            if provider not in self.circuits:
                self.circuits[provider] = CircuitBreaker(
                    provider=provider,
                    failure_threshold=self.failure_threshold,
                    recovery_timeout=self.recovery_timeout,
                    last_state_change=self.clock(),
                    clock=self.clock,
                )
            return self.circuits[provider]

    def is_available(self, provider: str) -> bool:
        return self.get_circuit(provider).is_available

    def record_success(self, provider: str) -> None:
        self.get_circuit(provider).record_success()

    def record_failure(self, provider: str, error: str = "") -> None:
        self.get_circuit(provider).record_failure(error)

    def get_status(self) -> Dict[str, Any]:
        return {name: cb.to_dict() for name, cb in self.circuits.items()}

    def reset_circuit(self, provider: str) -> None:
        circuit = self.get_circuit(provider)
        circuit._transition_to(CircuitState.CLOSED)
        circuit.failure_count = 0
        circuit.last_failure_time = None
        logger.info(f"Circuit manually reset for {provider}")

    def reset_all(self) -> None:
        for provider in list(self.circuits.keys()):
            self.reset_circuit(provider)
        logger.info("All circuits reset")
