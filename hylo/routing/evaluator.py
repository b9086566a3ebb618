"""Candidate evaluation: score each provider against one request.

Scoring is split in two. ``CandidateEvaluator.evaluate`` collects a
``ProviderState`` per provider (cached availability plus live capacity and
metrics) and ``rank_candidates`` turns those states into a ranked list
without touching any provider, so identical states always produce
identical rankings.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from hylo.core import constants
from hylo.observability.health_cache import HealthCache
from hylo.providers.base import (
    ComplexityLevel,
    LLMProvider,
    LLMRequest,
    ProviderMetrics,
    ProviderProfile,
)
from hylo.routing.complexity import ComplexityAnalysis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderState:
    """What the scorer knows about one provider for one routing call."""

    available: bool
    has_capacity: bool
    metrics: ProviderMetrics = field(default_factory=ProviderMetrics)


@dataclass(frozen=True)
class ProviderCandidate:
    """A provider scored for a single routing decision."""

    name: str
    score: float
    available: bool
    has_capacity: bool
    estimated_latency_ms: float
    estimated_cost_usd: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "available": self.available,
            "has_capacity": self.has_capacity,
            "estimated_latency_ms": self.estimated_latency_ms,
            "estimated_cost_usd": self.estimated_cost_usd,
        }


def preference_bonus(
    preferred: ComplexityLevel,
    level: ComplexityLevel,
    partial_match_bonus: float = constants.PARTIAL_MATCH_BONUS,
) -> float:
    if preferred == level:
        return constants.EXACT_MATCH_BONUS
    if (preferred == ComplexityLevel.MEDIUM) != (level == ComplexityLevel.MEDIUM):
        return partial_match_bonus
    return 0.0


def score_candidate(
    profile: ProviderProfile,
    state: ProviderState,
    complexity: ComplexityAnalysis,
    cost_per_token: float,
    partial_match_bonus: float = constants.PARTIAL_MATCH_BONUS,
) -> ProviderCandidate:
    metrics = state.metrics

    if state.available:
        score = preference_bonus(profile.preferred_complexity, complexity.level, partial_match_bonus)
        if not state.has_capacity:
            score *= constants.NO_CAPACITY_PENALTY
        if metrics.request_count > 0:
            score *= metrics.successful_requests / metrics.request_count
        if complexity.level == ComplexityLevel.LOW and profile.timeout_ms > 0:
            score += 1000 / profile.timeout_ms
    else:
        score = 0.0

    if metrics.completed_requests > 0 and metrics.average_latency_ms > 0:
        latency = metrics.average_latency_ms
    else:
        latency = profile.timeout_ms / 2

    return ProviderCandidate(
        name=profile.name.value,
        score=score,
        available=state.available,
        has_capacity=state.has_capacity,
        estimated_latency_ms=latency,
        estimated_cost_usd=cost_per_token * complexity.token_estimate,
    )


def rank_candidates(
    entries: Sequence[Tuple[ProviderProfile, ProviderState]],
    complexity: ComplexityAnalysis,
    cost_table: Optional[Mapping[str, float]] = None,
    partial_match_bonus: float = constants.PARTIAL_MATCH_BONUS,
) -> List[ProviderCandidate]:
    """Score and sort candidates by score, highest first.

    The sort is stable: equal scores keep the input enumeration order.
    """
    costs = constants.PROVIDER_TOKEN_COSTS if cost_table is None else cost_table
    candidates = [
        score_candidate(
            profile,
            state,
            complexity,
            costs.get(profile.name.value, 0.0),
            partial_match_bonus,
        )
        for profile, state in entries
    ]
    return sorted(candidates, key=lambda c: c.score, reverse=True)


class CandidateEvaluator:
    """Ranks providers for a request.

    Availability comes from the health cache; capacity and metrics are read
    from each provider on every call.

    Args:
        health_cache: Source of cached availability snapshots
        cost_table: USD per token keyed by provider name
        partial_match_bonus: Score when exactly one side of the
            preference comparison is "medium"
    """

    def __init__(
        self,
        health_cache: HealthCache,
        cost_table: Optional[Mapping[str, float]] = None,
        partial_match_bonus: float = constants.PARTIAL_MATCH_BONUS,
    ):
        self.health_cache = health_cache
        self.cost_table = dict(constants.PROVIDER_TOKEN_COSTS if cost_table is None else cost_table)
        self.partial_match_bonus = partial_match_bonus

    async def evaluate(
        self,
        providers: Iterable[LLMProvider],
        complexity: ComplexityAnalysis,
        request: LLMRequest,
    ) -> List[ProviderCandidate]:
        handles = list(providers)
        snapshots = await self.health_cache.snapshot_many((h.name, h) for h in handles)
        entries = [
            (h.profile, await self._state(h, snapshots[h.name].available)) for h in handles
        ]
        candidates = rank_candidates(entries, complexity, self.cost_table, self.partial_match_bonus)
        logger.debug(
            "Evaluated %d candidates for %s: %s",
            len(candidates),
            request.metadata.request_id,
            ", ".join(f"{c.name}={c.score:.3f}" for c in candidates),
        )
        return candidates

    async def _state(self, handle: LLMProvider, available: bool) -> ProviderState:
        try:
            has_capacity = bool(await handle.has_capacity())
        except Exception as e:
            logger.warning("Capacity check for %s failed: %s", handle.name.value, e)
            has_capacity = False
        return ProviderState(available=available, has_capacity=has_capacity, metrics=handle.get_metrics())
