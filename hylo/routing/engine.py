"""Routing decision maker: pick a primary provider and its fallback chain."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hylo.core.errors import NoProviderCapableError, NoProvidersAvailableError
from hylo.providers.base import LLMProvider, LLMRequest, ProviderName
from hylo.providers.registry import ProviderRegistry
from hylo.routing.complexity import ComplexityAnalysis, ComplexityAnalyzer
from hylo.routing.evaluator import CandidateEvaluator, ProviderCandidate

logger = logging.getLogger(__name__)

PROVIDER_STRENGTHS = {
    ProviderName.GROQ: "optimized for fast responses to simple queries",
    ProviderName.GEMINI: "balanced performance for moderate complexity",
    ProviderName.CEREBRAS: "best suited to complex reasoning tasks",
}


@dataclass(frozen=True)
class RoutingDecision:
    """Primary provider, ranked candidates and ordered fallbacks for one request."""

    selected_provider: str
    reasoning: str
    candidate_providers: List[ProviderCandidate]
    complexity_score: float
    fallback_chain: List[str]
    complexity: Optional[ComplexityAnalysis] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_provider": self.selected_provider,
            "reasoning": self.reasoning,
            "candidate_providers": [c.to_dict() for c in self.candidate_providers],
            "complexity_score": self.complexity_score,
            "fallback_chain": list(self.fallback_chain),
        }


def confidence_phrase(score: float) -> str:
    if score > 0.8:
        return f"High confidence (score {score:.2f}) based on preference match and track record"
    if score > 0.5:
        return f"Moderate confidence (score {score:.2f}) with fallbacks ready"
    return f"Lower confidence (score {score:.2f}); fallbacks are likely to matter"


class RoutingEngine:
    """Selects providers for requests.

    Collaborators are injected; nothing here reaches for process-global
    state.

    Args:
        registry: Provider registry
        evaluator: Candidate evaluator (owns the health cache)
        analyzer: Complexity analyzer (default weights and thresholds if omitted)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        evaluator: CandidateEvaluator,
        analyzer: Optional[ComplexityAnalyzer] = None,
    ):
        self.registry = registry
        self.evaluator = evaluator
        self.analyzer = analyzer or ComplexityAnalyzer()

    def analyze_complexity(self, request: LLMRequest) -> ComplexityAnalysis:
        return self.analyzer.analyze(request)

    async def route(
        self, request: LLMRequest, complexity: Optional[ComplexityAnalysis] = None
    ) -> RoutingDecision:
        """Choose the primary provider and fallback chain for a request.

        Args:
            request: Validated request
            complexity: Precomputed analysis (computed here when omitted)

        Raises:
            NoProvidersAvailableError: If no enabled provider is registered
            NoProviderCapableError: If every enabled provider is unavailable
        """
        healthy = self.registry.get_healthy()
        if not healthy:
            raise NoProvidersAvailableError(registered=len(self.registry))

        if complexity is None:
            complexity = self.analyzer.analyze(request)

        candidates = await self.evaluator.evaluate(healthy.values(), complexity, request)
        primary = self._select_primary(candidates)
        chain = self._fallback_chain(primary, healthy, complexity)

        decision = RoutingDecision(
            selected_provider=primary.name,
            reasoning=self._reasoning(primary, complexity),
            candidate_providers=candidates,
            complexity_score=complexity.score,
            fallback_chain=chain,
            complexity=complexity,
        )
        logger.info(
            "Routed %s to %s (complexity=%s, score=%.3f, fallbacks=%s)",
            request.metadata.request_id or "request",
            primary.name,
            complexity.level.value,
            complexity.score,
            chain,
        )
        return decision

    @staticmethod
    def _select_primary(candidates: List[ProviderCandidate]) -> ProviderCandidate:
        for candidate in candidates:
            if candidate.available and candidate.has_capacity:
                return candidate
        for candidate in candidates:
            if candidate.available:
                logger.warning("No provider has capacity; using %s as last resort", candidate.name)
                return candidate
        raise NoProviderCapableError([c.name for c in candidates])

    @staticmethod
    def _fallback_chain(
        primary: ProviderCandidate,
        healthy: Dict[ProviderName, LLMProvider],
        complexity: ComplexityAnalysis,
    ) -> List[str]:
        others = [h for name, h in healthy.items() if name.value != primary.name]
        others.sort(
            key=lambda h: (
                h.profile.preferred_complexity != complexity.level,
                h.profile.timeout_ms,
            )
        )
        return [h.name.value for h in others]

    @staticmethod
    def _reasoning(primary: ProviderCandidate, complexity: ComplexityAnalysis) -> str:
        level = complexity.level.value
        try:
            strength = PROVIDER_STRENGTHS[ProviderName(primary.name)]
            lead = f"{primary.name} selected for {level}-complexity request: {strength}"
        except (KeyError, ValueError):
            lead = f"{primary.name} selected as best available provider for {level}-complexity request"
        return f"{lead}. {confidence_phrase(primary.score)}."
