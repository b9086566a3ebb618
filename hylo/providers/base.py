"""Base provider interface for LLM routing.

Every vendor adapter implements LLMProvider. BaseLLMProvider carries the
shared bookkeeping (in-flight accounting, metrics, internal retries) so a
concrete adapter only has to translate one request into one vendor call.
"""

import asyncio
import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from hylo.core import constants
from hylo.core.errors import ProviderCapacityError, ProviderError

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    """Closed set of provider identifiers."""

    GROQ = "groq"
    GEMINI = "gemini"
    CEREBRAS = "cerebras"


class ComplexityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProviderStatus(str, Enum):
    ACTIVE = "active"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class LLMOptions:
    """Generation options supplied by the caller."""

    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    stream: bool = False
    stop_sequences: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RequestMetadata:
    request_id: str
    timestamp: int
    session_id: Optional[str] = None
    user_preference: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class LLMRequest:
    """A single inbound generation request. Immutable once constructed."""

    query: str
    options: LLMOptions = field(default_factory=LLMOptions)
    metadata: RequestMetadata = field(
        default_factory=lambda: RequestMetadata(request_id="", timestamp=0)
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "options": {
                "max_tokens": self.options.max_tokens,
                "temperature": self.options.temperature,
                "stream": self.options.stream,
                "stop_sequences": list(self.options.stop_sequences),
            },
            "metadata": {
                "request_id": self.metadata.request_id,
                "timestamp": self.metadata.timestamp,
                "session_id": self.metadata.session_id,
                "user_preference": self.metadata.user_preference,
            },
        }


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class LLMResponse:
    """Response returned by a provider."""

    content: str
    provider: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    latency_ms: float = 0.0
    cost_usd: float = 0.0
    finish_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "provider": self.provider,
            "model": self.model,
            "usage": self.usage.to_dict(),
            "latency_ms": self.latency_ms,
            "cost_usd": self.cost_usd,
            "finish_reason": self.finish_reason,
        }


@dataclass
class StreamChunk:
    """One piece of a streamed response. The last chunk has is_complete=True."""

    content: str
    is_complete: bool = False
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"content": self.content, "is_complete": self.is_complete}
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data


@dataclass(frozen=True)
class ProviderProfile:
    """Static routing preferences for a provider, set at registration.

    Attributes:
        name: Provider identifier
        preferred_complexity: Complexity band this provider is best at
        max_concurrent_requests: Request slots before the provider is full
        timeout_ms: Per-call deadline enforced by the fallback executor
        retry_attempts: Extra tries the provider makes internally
        model: Vendor model name
        is_enabled: Disabled providers stay registered but never route
    """

    name: ProviderName
    preferred_complexity: ComplexityLevel
    max_concurrent_requests: int
    timeout_ms: int
    retry_attempts: int = 0
    model: str = ""
    is_enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name.value,
            "preferred_complexity": self.preferred_complexity.value,
            "max_concurrent_requests": self.max_concurrent_requests,
            "timeout_ms": self.timeout_ms,
            "retry_attempts": self.retry_attempts,
            "model": self.model,
            "is_enabled": self.is_enabled,
        }


@dataclass
class ProviderMetrics:
    """Running counters for one provider.

    Invariants:
        error_rate == failed_requests / request_count when request_count > 0
        successful_requests + failed_requests <= request_count
    The gap between the two sides of the second invariant is the number of
    calls still in flight.
    """

    request_count: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_latency_ms: float = 0.0
    total_tokens_processed: int = 0
    total_cost_usd: float = 0.0
    error_rate: float = 0.0
    availability: float = 1.0
    capacity_utilization: float = 0.0
    last_request_timestamp: Optional[float] = None

    @property
    def success_rate(self) -> float:
        if self.request_count == 0:
            return 1.0
        return self.successful_requests / self.request_count

    @property
    def completed_requests(self) -> int:
        return self.successful_requests + self.failed_requests

    def record_start(self, timestamp: float) -> None:
        self.request_count += 1
        self.last_request_timestamp = timestamp
        self._recompute_rates()

    def record_success(self, latency_ms: float, tokens: int = 0, cost_usd: float = 0.0) -> None:
        """Record a successful call.

        Invalid latency or cost values are clamped to zero with a warning.
        """
        latency_ms = _clamp_non_negative("latency_ms", latency_ms)
        cost_usd = _clamp_non_negative("cost_usd", cost_usd)
        if tokens < 0:
            logger.warning("Invalid token count %s clamped to 0", tokens)
            tokens = 0

        self.successful_requests += 1
        self._update_latency(latency_ms)
        self.total_tokens_processed += tokens
        self.total_cost_usd += cost_usd
        self._recompute_rates()

    def record_failure(self, latency_ms: float) -> None:
        latency_ms = _clamp_non_negative("latency_ms", latency_ms)
        self.failed_requests += 1
        self._update_latency(latency_ms)
        self._recompute_rates()

    def _update_latency(self, latency_ms: float) -> None:
        completed = self.completed_requests
        self.average_latency_ms += (latency_ms - self.average_latency_ms) / completed

    def _recompute_rates(self) -> None:
        if self.request_count > 0:
            self.error_rate = self.failed_requests / self.request_count
            self.availability = self.successful_requests / self.request_count
        else:
            self.error_rate = 0.0
            self.availability = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_count": self.request_count,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "average_latency_ms": self.average_latency_ms,
            "total_tokens_processed": self.total_tokens_processed,
            "total_cost_usd": self.total_cost_usd,
            "error_rate": self.error_rate,
            "availability": self.availability,
            "capacity_utilization": self.capacity_utilization,
            "last_request_timestamp": self.last_request_timestamp,
        }


def _clamp_non_negative(name: str, value: float) -> float:
    if value is None or not math.isfinite(value) or value < 0:
        logger.warning("Invalid %s value %r clamped to 0", name, value)
        return 0.0
    return value


class LLMProvider(ABC):
    """Capability interface every routed provider implements."""

    profile: ProviderProfile

    @property
    def name(self) -> ProviderName:
        return self.profile.name

    @abstractmethod
    async def generate_response(self, request: LLMRequest) -> LLMResponse:
        """Generate a complete response.

        Raises:
            ProviderError: If the vendor call fails after internal retries
        """
        pass

    @abstractmethod
    def generate_stream(self, request: LLMRequest) -> AsyncIterator[StreamChunk]:
        """Stream a response as a finite sequence of chunks."""
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        pass

    @abstractmethod
    async def has_capacity(self) -> bool:
        pass

    @abstractmethod
    def get_metrics(self) -> ProviderMetrics:
        """Return a snapshot copy of the current metrics."""
        pass

    @abstractmethod
    def get_status(self) -> ProviderStatus:
        pass

    @abstractmethod
    def reset_metrics(self) -> None:
        pass


class BaseLLMProvider(LLMProvider):
    """Shared implementation for vendor adapters.

    Subclasses implement ``_complete`` (and optionally ``_stream``). Metrics
    are updated under a per-provider lock because the HTTP surface and the
    CLI may touch a provider from more than one thread.
    """

    retry_backoff_seconds: float = 0.25

    def __init__(self, profile: ProviderProfile, cost_per_token: Optional[float] = None):
        self.profile = profile
        if cost_per_token is None:
            cost_per_token = constants.PROVIDER_TOKEN_COSTS.get(profile.name.value, 0.0)
        self.cost_per_token = cost_per_token
        self._lock = threading.Lock()
        self._metrics = ProviderMetrics()
        self._in_flight = 0

    # -- vendor hooks -------------------------------------------------------

    @abstractmethod
    async def _complete(self, request: LLMRequest) -> Tuple[str, TokenUsage, Optional[str]]:
        """Make one vendor call. Returns (content, usage, finish_reason)."""
        pass

    async def _stream(self, request: LLMRequest) -> AsyncIterator[str]:
        """Yield content deltas. Defaults to a single delta from _complete."""
        content, _, _ = await self._complete(request)
        yield content

    def _is_configured(self) -> bool:
        return True

    # -- capability interface ----------------------------------------------

    async def generate_response(self, request: LLMRequest) -> LLMResponse:
        self._begin_request()
        start = time.perf_counter()
        try:
            content, usage, finish_reason = await self._complete_with_retries(request)
        except BaseException:
            # CancelledError included: a timed-out call is still a failure
            self._finish_failure((time.perf_counter() - start) * 1000)
            raise

        latency_ms = (time.perf_counter() - start) * 1000
        cost = usage.total_tokens * self.cost_per_token
        self._finish_success(latency_ms, usage.total_tokens, cost)
        return LLMResponse(
            content=content,
            provider=self.name.value,
            model=self.profile.model,
            usage=usage,
            latency_ms=latency_ms,
            cost_usd=cost,
            finish_reason=finish_reason,
        )

    async def generate_stream(self, request: LLMRequest) -> AsyncIterator[StreamChunk]:
        self._begin_request()
        start = time.perf_counter()
        parts = []
        try:
            async for delta in self._stream(request):
                if delta:
                    parts.append(delta)
                    yield StreamChunk(content=delta)
        except BaseException:
            self._finish_failure((time.perf_counter() - start) * 1000)
            raise

        latency_ms = (time.perf_counter() - start) * 1000
        content = "".join(parts)
        tokens = math.ceil(len(content) / 4)
        cost = tokens * self.cost_per_token
        self._finish_success(latency_ms, tokens, cost)
        yield StreamChunk(
            content="",
            is_complete=True,
            metadata={
                "provider": self.name.value,
                "model": self.profile.model,
                "latency_ms": latency_ms,
                "estimated_tokens": tokens,
                "cost_usd": cost,
            },
        )

    async def is_available(self) -> bool:
        return self._available_now()

    async def has_capacity(self) -> bool:
        return self._capacity_now()

    def get_metrics(self) -> ProviderMetrics:
        with self._lock:
            return replace(self._metrics, capacity_utilization=self._utilization())

    def get_status(self) -> ProviderStatus:
        if not self._available_now():
            return ProviderStatus.UNAVAILABLE
        metrics = self.get_metrics()
        if not self._capacity_now() or metrics.error_rate > constants.DEGRADED_ERROR_RATE:
            return ProviderStatus.DEGRADED
        return ProviderStatus.ACTIVE

    def reset_metrics(self) -> None:
        with self._lock:
            self._metrics = ProviderMetrics()
        logger.info("Metrics reset for %s", self.name.value)

    # -- internals ----------------------------------------------------------

    def _attempt_timeout_ms(self) -> int:
        """Per-try SDK timeout; all tries together fit inside ``timeout_ms``."""
        return max(1, self.profile.timeout_ms // (self.profile.retry_attempts + 1))

    def _available_now(self) -> bool:
        return self.profile.is_enabled and self._is_configured()

    def _capacity_now(self) -> bool:
        with self._lock:
            return self._utilization() < constants.CAPACITY_UTILIZATION_LIMIT

    def _utilization(self) -> float:
        if self.profile.max_concurrent_requests <= 0:
            return 1.0
        return self._in_flight / self.profile.max_concurrent_requests

    def _begin_request(self) -> None:
        with self._lock:
            if self._in_flight >= self.profile.max_concurrent_requests:
                raise ProviderCapacityError(
                    self.name.value, self._in_flight, self.profile.max_concurrent_requests
                )
            self._in_flight += 1
            self._metrics.record_start(time.time())

    def _finish_success(self, latency_ms: float, tokens: int, cost: float) -> None:
        with self._lock:
            self._in_flight -= 1
            self._metrics.record_success(latency_ms, tokens, cost)

    def _finish_failure(self, latency_ms: float) -> None:
        with self._lock:
            self._in_flight -= 1
            self._metrics.record_failure(latency_ms)

    async def _complete_with_retries(self, request: LLMRequest):
        attempts = self.profile.retry_attempts + 1
        for attempt in range(attempts):
            try:
                return await self._complete(request)
            except ProviderError as e:
                if not e.retryable or attempt == attempts - 1:
                    raise
                wait_time = self.retry_backoff_seconds * (2 ** attempt)
                logger.warning(
                    "%s error (attempt %d/%d): %s; retrying in %.2fs",
                    self.name.value, attempt + 1, attempts, e.message, wait_time,
                )
                await asyncio.sleep(wait_time)
