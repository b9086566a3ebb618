"""Fallback execution across an ordered provider chain.

Providers are tried strictly one after another; each call is bounded by
that provider's own timeout. Provider failures become attempt records and
never reach the caller. Running out of providers produces a degraded
result, and a set cancellation event produces a cancelled result.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from hylo.core.errors import (
    ProviderAuthError,
    ProviderCapacityError,
    ProviderNetworkError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from hylo.observability.circuit_breaker import CircuitBreakerRegistry
from hylo.providers.base import LLMRequest, LLMResponse, StreamChunk, TokenUsage
from hylo.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

DEGRADED_MESSAGE = (
    "We're experiencing technical difficulties and couldn't process your travel "
    "request right now. Please try again in a few moments."
)


class AttemptStatus(str, Enum):
    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    SKIPPED = "skipped"


class ErrorCategory(str, Enum):
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    AVAILABILITY_ERROR = "AVAILABILITY_ERROR"
    CAPACITY_ERROR = "CAPACITY_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    CIRCUIT_BREAKER_OPEN = "CIRCUIT_BREAKER_OPEN"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class ErrorInfo:
    code: ErrorCategory
    message: str
    provider: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "provider": self.provider,
            "retryable": self.retryable,
        }


@dataclass(frozen=True)
class ExecutionAttempt:
    """Outcome of trying one provider."""

    provider: str
    success: bool
    latency_ms: float
    status: AttemptStatus
    error: Optional[ErrorInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "provider": self.provider,
            "success": self.success,
            "latency_ms": self.latency_ms,
            "status": self.status.value,
        }
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data


@dataclass
class ExecutionResult:
    """Terminal result of a fallback run.

    Exactly one of three shapes: ``response`` set (success),
    ``degraded_response`` True (every provider failed), or ``cancelled``
    True (the caller gave up).
    """

    attempts: List[ExecutionAttempt] = field(default_factory=list)
    response: Optional[LLMResponse] = None
    degraded_response: bool = False
    cancelled: bool = False
    last_error: Optional[ErrorInfo] = None
    total_latency_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.response is not None

    @property
    def usage(self) -> Optional[TokenUsage]:
        return self.response.usage if self.response else None

    @property
    def final_provider(self) -> Optional[str]:
        for attempt in self.attempts:
            if attempt.success:
                return attempt.provider
        return None

    @property
    def fallbacks_used(self) -> int:
        return max(len(self.attempts) - 1, 0)

    @property
    def degraded_message(self) -> Optional[str]:
        return DEGRADED_MESSAGE if self.degraded_response else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "response": self.response.to_dict() if self.response else None,
            "degraded_response": self.degraded_response,
            "cancelled": self.cancelled,
            "last_error": self.last_error.to_dict() if self.last_error else None,
            "attempts": [a.to_dict() for a in self.attempts],
            "final_provider": self.final_provider,
            "fallbacks_used": self.fallbacks_used,
            "total_latency_ms": self.total_latency_ms,
        }


class _AttemptCancelled(Exception):
    """The caller's cancellation event fired during an attempt."""


def categorize_error(error: BaseException, provider: Optional[str] = None) -> ErrorInfo:
    """Map an exception raised by a provider call to an ErrorInfo."""
    message = getattr(error, "message", None) or str(error) or type(error).__name__
    if isinstance(error, (asyncio.TimeoutError, ProviderTimeoutError)):
        return ErrorInfo(ErrorCategory.TIMEOUT_ERROR, message or "Request timed out", provider, True)
    if isinstance(error, ProviderRateLimitError):
        return ErrorInfo(ErrorCategory.RATE_LIMIT_ERROR, message, provider, True)
    if isinstance(error, ProviderAuthError):
        return ErrorInfo(ErrorCategory.AUTH_ERROR, message, provider, False)
    if isinstance(error, ProviderUnavailableError):
        return ErrorInfo(ErrorCategory.AVAILABILITY_ERROR, message, provider, True)
    if isinstance(error, ProviderCapacityError):
        return ErrorInfo(ErrorCategory.CAPACITY_ERROR, message, provider, True)
    if isinstance(error, (ProviderNetworkError, ConnectionError)):
        return ErrorInfo(ErrorCategory.NETWORK_ERROR, message, provider, True)
    return ErrorInfo(ErrorCategory.UNKNOWN_ERROR, message, provider, False)


async def _bounded(awaitable, timeout_s: float, cancel_event: Optional[asyncio.Event]):
    """Await ``awaitable`` until it finishes, times out or is cancelled.

    Raises:
        asyncio.TimeoutError: If the deadline passes first
        _AttemptCancelled: If cancel_event is set first
    """
    call = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
    try:
        done, _ = await asyncio.wait(
            [t for t in (call, waiter) if t is not None],
            timeout=timeout_s,
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        if waiter is not None:
            waiter.cancel()
        if not call.done():
            call.cancel()
            await asyncio.wait([call])

    if call in done:
        return call.result()
    if cancel_event is not None and cancel_event.is_set():
        raise _AttemptCancelled()
    raise asyncio.TimeoutError()


class FallbackExecutor:
    """Runs a request through a primary provider and its fallback chain.

    Args:
        registry: Provider lookup
        circuit_breakers: Per-provider circuits; an open circuit skips the
            provider without calling it
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        circuit_breakers: Optional[CircuitBreakerRegistry] = None,
    ):
        self.registry = registry
        self.circuit_breakers = circuit_breakers or CircuitBreakerRegistry()

    async def execute_with_fallback(
        self,
        request: LLMRequest,
        primary: str,
        fallback_chain: Sequence[str],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExecutionResult:
        """Try ``primary`` then each fallback until one succeeds.

        Returns:
            ExecutionResult; check ``success``, ``degraded_response`` and
            ``cancelled``. Provider errors never propagate from here.
        """
        start = time.perf_counter()
        result = ExecutionResult()
        chain = [primary, *fallback_chain]

        for index, name in enumerate(chain):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info("Request cancelled before trying %s", name)
                break

            attempt_start = time.perf_counter()
            skip = await self._precheck(name)
            if skip is not None:
                result.attempts.append(skip)
                result.last_error = skip.error
                continue

            handle = self.registry.get(name)
            timeout_ms = handle.profile.timeout_ms
            try:
                response = await _bounded(
                    handle.generate_response(request), timeout_ms / 1000, cancel_event
                )
            except _AttemptCancelled:
                result.cancelled = True
                logger.info("Request cancelled while %s was in flight", name)
                break
            except asyncio.TimeoutError:
                error = ErrorInfo(
                    ErrorCategory.TIMEOUT_ERROR,
                    f"{name} did not respond within {timeout_ms}ms",
                    name,
                    True,
                )
                self._record_failure(result, name, attempt_start, AttemptStatus.TIMED_OUT, error)
                continue
            except Exception as e:
                error = categorize_error(e, name)
                self._record_failure(result, name, attempt_start, AttemptStatus.FAILED, error)
                continue

            result.attempts.append(
                ExecutionAttempt(
                    provider=name,
                    success=True,
                    latency_ms=_elapsed_ms(attempt_start),
                    status=AttemptStatus.SUCCESS,
                )
            )
            result.response = response
            self.circuit_breakers.record_success(name)
            if index > 0:
                logger.info("Fallback to %s succeeded after %d failed attempts", name, index)
            break
        else:
            result.degraded_response = True
            logger.error(
                "All %d providers failed for %s; returning degraded result",
                len(chain), request.metadata.request_id or "request",
            )

        result.total_latency_ms = _elapsed_ms(start)
        return result

    async def execute_stream_with_fallback(
        self,
        request: LLMRequest,
        primary: str,
        fallback_chain: Sequence[str],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream from the first provider whose stream opens successfully.

        A provider is committed once it yields its first chunk; failures
        before that move on to the next provider. The final chunk always has
        ``is_complete=True`` and carries the attempt history in its metadata.
        """
        attempts: List[ExecutionAttempt] = []
        last_error: Optional[ErrorInfo] = None

        for name in [primary, *fallback_chain]:
            if cancel_event is not None and cancel_event.is_set():
                yield _final_chunk(attempts, None, cancelled=True)
                return

            attempt_start = time.perf_counter()
            skip = await self._precheck(name)
            if skip is not None:
                attempts.append(skip)
                last_error = skip.error
                continue

            handle = self.registry.get(name)
            timeout_s = handle.profile.timeout_ms / 1000
            stream = handle.generate_stream(request)
            committed = False
            try:
                while True:
                    chunk = await _bounded(_next_chunk(stream), timeout_s, cancel_event)
                    if chunk is None:
                        break
                    if not committed:
                        committed = True
                        attempts.append(
                            ExecutionAttempt(name, True, _elapsed_ms(attempt_start), AttemptStatus.SUCCESS)
                        )
                        self.circuit_breakers.record_success(name)
                    if chunk.is_complete:
                        metadata = dict(chunk.metadata or {})
                        metadata.update(_history(attempts))
                        yield StreamChunk(content=chunk.content, is_complete=True, metadata=metadata)
                        return
                    yield chunk
            except _AttemptCancelled:
                yield _final_chunk(attempts, None, cancelled=True)
                return
            except Exception as e:
                if isinstance(e, asyncio.TimeoutError):
                    status = AttemptStatus.TIMED_OUT
                    error = ErrorInfo(ErrorCategory.TIMEOUT_ERROR, f"{name} stream stalled", name, True)
                else:
                    status = AttemptStatus.FAILED
                    error = categorize_error(e, name)
                self.circuit_breakers.record_failure(name, error.message)
                if committed:
                    logger.warning("Stream from %s failed mid-response: %s", name, error.message)
                    yield _final_chunk(attempts, error, interrupted=True)
                    return
                attempts.append(ExecutionAttempt(name, False, _elapsed_ms(attempt_start), status, error))
                last_error = error
                continue
            finally:
                await stream.aclose()

            if committed:
                yield _final_chunk(attempts, None)
                return

            last_error = ErrorInfo(ErrorCategory.UNKNOWN_ERROR, f"{name} returned an empty stream", name)
            attempts.append(
                ExecutionAttempt(name, False, _elapsed_ms(attempt_start), AttemptStatus.FAILED, last_error)
            )
            self.circuit_breakers.record_failure(name, last_error.message)

        yield StreamChunk(
            content=DEGRADED_MESSAGE,
            is_complete=True,
            metadata={**_history(attempts), "degraded_response": True,
                      "last_error": last_error.to_dict() if last_error else None},
        )

    async def _precheck(self, name: str) -> Optional[ExecutionAttempt]:
        """Return a failed/skipped attempt if ``name`` should not be called."""
        if not self.circuit_breakers.is_available(name):
            logger.warning("Circuit open for %s; skipping", name)
            return ExecutionAttempt(
                provider=name,
                success=False,
                latency_ms=0.0,
                status=AttemptStatus.SKIPPED,
                error=ErrorInfo(
                    ErrorCategory.CIRCUIT_BREAKER_OPEN,
                    f"Circuit breaker open for provider {name}",
                    name,
                    True,
                ),
            )

        handle = self.registry.get(name)
        if handle is None:
            return ExecutionAttempt(
                name, False, 0.0, AttemptStatus.FAILED,
                ErrorInfo(ErrorCategory.AVAILABILITY_ERROR, f"Provider {name} is not registered", name),
            )
        try:
            available = await handle.is_available()
        except Exception as e:
            error = categorize_error(e, name)
            self.circuit_breakers.record_failure(name, error.message)
            logger.warning("Availability check for %s failed: %s", name, error.message)
            return ExecutionAttempt(name, False, 0.0, AttemptStatus.FAILED, error)
        if not available:
            return ExecutionAttempt(
                name, False, 0.0, AttemptStatus.FAILED,
                ErrorInfo(ErrorCategory.AVAILABILITY_ERROR, f"Provider {name} is not available", name, True),
            )
        return None

    def _record_failure(
        self,
        result: ExecutionResult,
        name: str,
        attempt_start: float,
        status: AttemptStatus,
        error: ErrorInfo,
    ) -> None:
        result.attempts.append(
            ExecutionAttempt(
                provider=name,
                success=False,
                latency_ms=_elapsed_ms(attempt_start),
                status=status,
                error=error,
            )
        )
        result.last_error = error
        self.circuit_breakers.record_failure(name, error.message)
        logger.warning("Provider %s %s: %s", name, status.value, error.message)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


async def _next_chunk(stream: AsyncIterator[StreamChunk]) -> Optional[StreamChunk]:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


def _history(attempts: List[ExecutionAttempt]) -> Dict[str, Any]:
    final = next((a.provider for a in attempts if a.success), None)
    return {
        "attempts": [a.to_dict() for a in attempts],
        "final_provider": final,
        "fallbacks_used": max(len(attempts) - 1, 0),
    }


def _final_chunk(
    attempts: List[ExecutionAttempt],
    error: Optional[ErrorInfo],
    cancelled: bool = False,
    interrupted: bool = False,
) -> StreamChunk:
    metadata = _history(attempts)
    if cancelled:
        metadata["cancelled"] = True
    if interrupted:
        metadata["interrupted"] = True
    if error is not None:
        metadata["error"] = error.to_dict()
    return StreamChunk(content="", is_complete=True, metadata=metadata)
