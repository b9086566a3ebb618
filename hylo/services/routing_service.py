"""Routing service: analyze, route, execute and record one request.

RoutingService is the seam the HTTP and CLI surfaces talk to. It owns no
state of its own; every collaborator is passed in, and ``build_service``
assembles the standard set from configuration once at startup.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional, Tuple

from hylo.api.sse import EventType, SSEEvent, now_ms
from hylo.core.errors import HyloError
from hylo.observability.circuit_breaker import CircuitBreakerRegistry
from hylo.observability.health_cache import HealthCache
from hylo.observability.recorder import (
    InMemoryRecorder,
    LoggingRecorder,
    ObservabilityRecorder,
    RequestTrace,
)
from hylo.providers.base import LLMRequest
from hylo.providers.registry import ProviderRegistry, build_registry
from hylo.routing.complexity import ComplexityAnalysis, ComplexityAnalyzer
from hylo.routing.engine import RoutingDecision, RoutingEngine
from hylo.routing.evaluator import CandidateEvaluator
from hylo.routing.fallback import ExecutionResult, FallbackExecutor

logger = logging.getLogger(__name__)


class RoutingService:
    """Runs requests end to end.

    Args:
        engine: Routing decision maker
        executor: Fallback executor
        recorder: Trace sink, flushed after every request
    """

    def __init__(
        self,
        engine: RoutingEngine,
        executor: FallbackExecutor,
        recorder: ObservabilityRecorder,
    ):
        self.engine = engine
        self.executor = executor
        self.recorder = recorder

    @property
    def registry(self) -> ProviderRegistry:
        return self.engine.registry

    async def process(
        self, request: LLMRequest, cancel_event: Optional[asyncio.Event] = None
    ) -> Tuple[ComplexityAnalysis, RoutingDecision, ExecutionResult]:
        """Route and execute a request, recording its trace.

        Raises:
            RoutingError: If no provider can be selected
        """
        complexity = self.engine.analyze_complexity(request)
        decision = await self.engine.route(request, complexity)

        start = now_ms()
        result = await self.executor.execute_with_fallback(
            request, decision.selected_provider, decision.fallback_chain, cancel_event
        )
        end = now_ms()

        await self._record(request, complexity, decision, result, start, end)
        await self.recorder.flush()
        return complexity, decision, result

    async def stream_events(
        self, request: LLMRequest, cancel_event: Optional[asyncio.Event] = None
    ) -> AsyncIterator[SSEEvent]:
        """Yield progress events for a request.

        The sequence always ends with ``metrics`` (after ``completed``) or a
        single ``error`` event.
        """
        request_id = request.metadata.request_id
        start = now_ms()

        def event(event_type: EventType, data: dict) -> SSEEvent:
            return SSEEvent(type=event_type, request_id=request_id, data=data)

        yield event(
            EventType.STARTED,
            {"message": "Request received and processing started", "timestamp": start},
        )
        try:
            yield event(EventType.STEP, {"step": "complexity_analysis", "message": "Analyzing query complexity..."})
            complexity = self.engine.analyze_complexity(request)
            yield event(
                EventType.COMPLEXITY,
                {
                    "level": complexity.level.value,
                    "score": complexity.score,
                    "reasoning": complexity.reasoning,
                    "factors": [f.to_dict() for f in complexity.factors],
                    "detected_patterns": list(complexity.detected_patterns),
                    "estimated_tokens": complexity.token_estimate,
                },
            )

            yield event(EventType.STEP, {"step": "provider_selection", "message": "Selecting optimal provider..."})
            decision = await self.engine.route(request, complexity)
            yield event(
                EventType.ROUTING,
                {
                    "selected_provider": decision.selected_provider,
                    "reasoning": decision.reasoning,
                    "fallback_chain": list(decision.fallback_chain),
                    "candidates": [c.to_dict() for c in decision.candidate_providers],
                },
            )

            yield event(
                EventType.STEP,
                {"step": "llm_execution", "message": f"Executing request with {decision.selected_provider}..."},
            )
            exec_start = now_ms()
            result = await self.executor.execute_with_fallback(
                request, decision.selected_provider, decision.fallback_chain, cancel_event
            )
            exec_end = now_ms()

            yield event(EventType.STEP, {"step": "completion", "message": "Processing completed, recording metrics..."})
            await self._record(request, complexity, decision, result, exec_start, exec_end)

            if result.cancelled:
                yield event(
                    EventType.ERROR,
                    {"message": "Request was cancelled", "type": "cancelled", "retryable": True},
                )
                return

            yield event(
                EventType.COMPLETED,
                {
                    "success": result.success,
                    "response": result.response.content if result.success else result.degraded_message,
                    "metadata": {
                        "provider": result.final_provider,
                        "total_latency_ms": exec_end - start,
                        "complexity_level": complexity.level.value,
                        "fallbacks_used": result.fallbacks_used,
                        "usage": result.usage.to_dict() if result.usage else None,
                        "attempts": [a.to_dict() for a in result.attempts],
                    },
                },
            )
            yield event(
                EventType.METRICS,
                {
                    "total_latency_ms": exec_end - start,
                    "complexity": complexity.level.value,
                    "provider": result.final_provider,
                    "success": result.success,
                    "timestamp": exec_end,
                },
            )
        except HyloError as e:
            logger.warning("Routing failed for %s: %s", request_id, e.message)
            yield event(
                EventType.ERROR,
                {"message": e.message, "type": e.error_code.lower(), "retryable": False, "details": e.details},
            )
        except Exception as e:
            logger.exception("Unexpected error while routing %s", request_id)
            yield event(
                EventType.ERROR,
                {"message": str(e) or "Unknown error occurred", "type": "routing_error", "retryable": True},
            )
        finally:
            await self.recorder.flush()

    async def _record(
        self,
        request: LLMRequest,
        complexity: ComplexityAnalysis,
        decision: RoutingDecision,
        result: ExecutionResult,
        start: int,
        end: int,
    ) -> None:
        trace = RequestTrace.build(
            request.metadata.request_id, complexity, decision, result, start, end
        )
        try:
            await self.recorder.record(trace)
        except Exception:
            logger.exception("Failed to record trace for %s", request.metadata.request_id)


def build_service(config=None, registry: Optional[ProviderRegistry] = None) -> RoutingService:
    """Assemble the standard service from configuration.

    Args:
        config: AppConfig (defaults to AppConfig.from_env())
        registry: Pre-built registry; built from config when omitted

    Raises:
        ConfigurationError: If configuration is invalid or a key is missing
    """
    from hylo.config import AppConfig

    config = config or AppConfig.from_env()
    registry = registry if registry is not None else build_registry(config)
    routing = config.routing

    engine = RoutingEngine(
        registry,
        CandidateEvaluator(HealthCache(ttl_seconds=routing.health_cache_ttl)),
        ComplexityAnalyzer.from_config(routing),
    )
    executor = FallbackExecutor(
        registry,
        CircuitBreakerRegistry(
            failure_threshold=routing.circuit_breaker_failure_threshold,
            recovery_timeout=routing.circuit_breaker_recovery_timeout,
        ),
    )
    return RoutingService(engine, executor, InMemoryRecorder(forward_to=LoggingRecorder()))
