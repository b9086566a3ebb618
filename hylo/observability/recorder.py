"""Observability records for routed requests.

One RequestTrace is produced per request and handed to an
ObservabilityRecorder. Two recorders ship here: LoggingRecorder writes a
structured log line per trace, InMemoryRecorder batches traces and keeps a
bounded history for status endpoints and tests.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

from hylo.core import constants
from hylo.routing.complexity import ComplexityAnalysis
from hylo.routing.engine import RoutingDecision
from hylo.routing.fallback import ExecutionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceTiming:
    start_time: int
    end_time: int
    provider: Optional[str]
    fallbacks_used: int

    @property
    def duration_ms(self) -> int:
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "provider": self.provider,
            "fallbacks_used": self.fallbacks_used,
        }


@dataclass(frozen=True)
class RequestTrace:
    """Everything known about one request once it has finished."""

    request_id: str
    complexity: ComplexityAnalysis
    decision: RoutingDecision
    result: ExecutionResult
    timing: TraceTiming

    @classmethod
    def build(
        cls,
        request_id: str,
        complexity: ComplexityAnalysis,
        decision: RoutingDecision,
        result: ExecutionResult,
        start_time: int,
        end_time: int,
    ) -> "RequestTrace":
        return cls(
            request_id=request_id,
            complexity=complexity,
            decision=decision,
            result=result,
            timing=TraceTiming(
                start_time=start_time,
                end_time=end_time,
                provider=result.final_provider,
                fallbacks_used=result.fallbacks_used,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "complexity": self.complexity.to_dict(),
            "decision": self.decision.to_dict(),
            "result": self.result.to_dict(),
            "timing": self.timing.to_dict(),
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "complexity": self.complexity.level.value,
            "selected_provider": self.decision.selected_provider,
            "final_provider": self.timing.provider,
            "fallbacks_used": self.timing.fallbacks_used,
            "success": self.result.success,
            "degraded": self.result.degraded_response,
            "duration_ms": self.timing.duration_ms,
        }


class ObservabilityRecorder(ABC):
    """Sink for request traces."""

    @abstractmethod
    async def record(self, trace: RequestTrace) -> None:
        pass

    @abstractmethod
    async def flush(self) -> None:
        pass


class LoggingRecorder(ObservabilityRecorder):
    """Writes one JSON log line per trace."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.log = log or logger
        self.level = level

    async def record(self, trace: RequestTrace) -> None:
        self.log.log(self.level, "request_trace %s", json.dumps(trace.summary(), sort_keys=True))

    async def flush(self) -> None:
        pass


class InMemoryRecorder(ObservabilityRecorder):
    """Batches traces and keeps the most recent ones.

    Args:
        batch_size: Pending traces that trigger an automatic flush
        history_size: Flushed traces retained
        forward_to: Optional recorder that receives every flushed trace
    """

    def __init__(
        self,
        batch_size: Optional[int] = None,
        history_size: Optional[int] = None,
        forward_to: Optional[ObservabilityRecorder] = None,
    ):
        self.batch_size = batch_size or constants.RECORDER_BATCH_SIZE
        self.history: Deque[RequestTrace] = deque(
            maxlen=history_size or constants.RECORDER_HISTORY_SIZE
        )
        self.forward_to = forward_to
        self._pending: List[RequestTrace] = []
        self._lock = threading.Lock()
        self.flush_count = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def record(self, trace: RequestTrace) -> None:
        with self._lock:
            self._pending.append(trace)
            full = len(self._pending) >= self.batch_size
        if full:
            await self.flush()

    async def flush(self) -> None:
        with self._lock:
            batch, self._pending = self._pending, []
            self.history.extend(batch)
            self.flush_count += 1
        if self.forward_to is not None and batch:
            for trace in batch:
                await self.forward_to.record(trace)
            await self.forward_to.flush()
        if batch:
            logger.debug("Flushed %d traces", len(batch))

    def recent(self, limit: int = 20) -> List[RequestTrace]:
        with self._lock:
            items = list(self.history)
        return items[-limit:]

    def stats(self) -> Dict[str, Any]:
        """Aggregate counters over retained history."""
        traces = self.recent(limit=len(self.history) or 1)
        total = len(traces)
        successes = sum(1 for t in traces if t.result.success)
        fallbacks = sum(1 for t in traces if t.timing.fallbacks_used > 0)
        latency = sum(t.timing.duration_ms for t in traces)
        return {
            "total": total,
            "successful": successes,
            "failed": total - successes,
            "success_rate": successes / total if total else 1.0,
            "fallback_rate": fallbacks / total if total else 0.0,
            "avg_latency_ms": latency / total if total else 0.0,
            "pending": self.pending,
        }
