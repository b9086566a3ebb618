"""Complexity analysis, candidate ranking, routing and fallback execution."""

from .complexity import ComplexityAnalysis, ComplexityAnalyzer, ComplexityFactor, FactorType
from .evaluator import CandidateEvaluator, ProviderCandidate, ProviderState
from .engine import RoutingDecision, RoutingEngine
from .fallback import (
    AttemptStatus,
    ErrorCategory,
    ErrorInfo,
    ExecutionAttempt,
    ExecutionResult,
    FallbackExecutor,
)

__all__ = [
    "ComplexityAnalysis",
    "ComplexityAnalyzer",
    "ComplexityFactor",
    "FactorType",
    "CandidateEvaluator",
    "ProviderCandidate",
    "ProviderState",
    "RoutingDecision",
    "RoutingEngine",
    "AttemptStatus",
    "ErrorCategory",
    "ErrorInfo",
    "ExecutionAttempt",
    "ExecutionResult",
    "FallbackExecutor",
]
