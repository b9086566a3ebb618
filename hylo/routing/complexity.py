"""Heuristic complexity analysis for routing.

Scores a request from five textual/contextual factors combined by a fixed
weighted average. Pure and deterministic: the same request always yields
the same analysis.
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from hylo.core import constants
from hylo.core.errors import InvalidConfigError
from hylo.providers.base import ComplexityLevel, LLMRequest


class FactorType(str, Enum):
    QUERY_LENGTH = "query_length"
    TECHNICAL_TERMS = "technical_terms"
    MULTI_STEP = "multi_step"
    CONTEXT_DEPTH = "context_depth"
    OUTPUT_FORMAT = "output_format"


TECHNICAL_PATTERNS = [
    re.compile(r"\b(itinerary|accommodation|transportation|logistics|booking|reservation)\b", re.I),
    re.compile(r"\b(optimization|algorithm|analysis|evaluation|comparison|recommendation)\b", re.I),
    re.compile(r"\b(geographical|cultural|historical|architectural|culinary)\b", re.I),
    re.compile(r"\b(schedule|timeline|duration|availability|constraint|requirement)\b", re.I),
    re.compile(r"\b(budget|cost|pricing|expense|financial|economic)\b", re.I),
]

MULTI_STEP_PATTERNS = [
    re.compile(r"\b(first|second|third|then|next|after|before|finally|lastly)\b", re.I),
    re.compile(r"\b(plan|organize|arrange|coordinate|consider|evaluate|compare)\b", re.I),
    re.compile(r"\b(if|unless|provided|depending|based on|according to)\b", re.I),
    re.compile(r"\b(both|all|various|multiple|several|different|alternative)\b", re.I),
    re.compile(r"\b\d+\."),
    re.compile(r"^\s*[-*•]\s", re.M),
]

FORMAT_SIGNALS = [
    (re.compile(r"\b(json|format|structure)\b", re.I), 0.3),
    (re.compile(r"\b(table|list|bullet)\b", re.I), 0.2),
    (re.compile(r"\b(detailed|comprehensive|complete)\b", re.I), 0.3),
    (re.compile(r"\b(section|part|chapter)\b", re.I), 0.2),
]

TRAVEL_PATTERN = re.compile(r"\b(travel|trip)\b", re.I)
ITINERARY_PATTERN = re.compile(r"\bitinerary\b", re.I)

FACTOR_DESCRIPTIONS = {
    FactorType.QUERY_LENGTH: "Length of the query in words and characters",
    FactorType.TECHNICAL_TERMS: "Density of travel and planning terminology",
    FactorType.MULTI_STEP: "Sequential, conditional and enumerated reasoning markers",
    FactorType.CONTEXT_DEPTH: "Session context and non-default generation options",
    FactorType.OUTPUT_FORMAT: "Requested structure and level of detail in the output",
}


@dataclass(frozen=True)
class ComplexityFactor:
    type: FactorType
    weight: float
    value: float
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "weight": self.weight,
            "value": self.value,
            "description": self.description,
        }


@dataclass(frozen=True)
class ComplexityAnalysis:
    """Result of analyzing one request. Never mutated after creation."""

    level: ComplexityLevel
    score: float
    factors: List[ComplexityFactor]
    detected_patterns: List[str] = field(default_factory=list)
    reasoning: str = ""
    token_estimate: int = 0

    def factor(self, factor_type: FactorType) -> ComplexityFactor:
        for f in self.factors:
            if f.type == factor_type:
                return f
        raise KeyError(factor_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "score": self.score,
            "factors": [f.to_dict() for f in self.factors],
            "detected_patterns": list(self.detected_patterns),
            "reasoning": self.reasoning,
            "token_estimate": self.token_estimate,
        }


def _count_matches(patterns: List[re.Pattern], text: str) -> int:
    return sum(len(p.findall(text)) for p in patterns)


def score_factors(
    values: Dict[FactorType, float], weights: Dict[FactorType, float]
) -> float:
    """Weighted average of factor values."""
    total_weight = sum(weights[t] for t in FactorType)
    if total_weight <= 0:
        return 0.0
    weighted = sum(values[t] * weights[t] for t in FactorType)
    return weighted / total_weight


class ComplexityAnalyzer:
    """Maps a request to a complexity score and level.

    Args:
        weights: Factor weights keyed by factor name; must sum to 1.0
        low_threshold: Scores at or below this are "low"
        medium_threshold: Scores at or below this (and above low) are "medium"

    Raises:
        InvalidConfigError: If weights or thresholds are inconsistent
    """

    def __init__(
        self,
        weights: Optional[Dict[str, float]] = None,
        low_threshold: Optional[float] = None,
        medium_threshold: Optional[float] = None,
    ):
        raw = dict(weights or constants.DEFAULT_FACTOR_WEIGHTS)
        try:
            self.weights = {FactorType(k): float(v) for k, v in raw.items()}
        except ValueError as e:
            raise InvalidConfigError("factor_weights", raw, str(e)) from e
        if set(self.weights) != set(FactorType):
            raise InvalidConfigError("factor_weights", raw, "all five factors must be weighted")
        if any(not 0.0 <= w <= 1.0 for w in self.weights.values()):
            raise InvalidConfigError("factor_weights", raw, "weights must lie within [0, 1]")
        if not math.isclose(sum(self.weights.values()), 1.0, abs_tol=1e-6):
            raise InvalidConfigError("factor_weights", raw, "weights must sum to 1.0")

        self.low_threshold = (
            constants.COMPLEXITY_LOW_THRESHOLD if low_threshold is None else low_threshold
        )
        self.medium_threshold = (
            constants.COMPLEXITY_MEDIUM_THRESHOLD if medium_threshold is None else medium_threshold
        )
        if not 0.0 < self.low_threshold < self.medium_threshold < 1.0:
            raise InvalidConfigError(
                "thresholds",
                (self.low_threshold, self.medium_threshold),
                "must satisfy 0 < low < medium < 1",
            )

    @classmethod
    def from_config(cls, routing_config) -> "ComplexityAnalyzer":
        return cls(
            weights=routing_config.factor_weights,
            low_threshold=routing_config.low_threshold,
            medium_threshold=routing_config.medium_threshold,
        )

    def analyze(self, request: LLMRequest) -> ComplexityAnalysis:
        query = request.query
        values = {
            FactorType.QUERY_LENGTH: self.query_length(query),
            FactorType.TECHNICAL_TERMS: self.technical_terms(query),
            FactorType.MULTI_STEP: self.multi_step(query),
            FactorType.CONTEXT_DEPTH: self.context_depth(request),
            FactorType.OUTPUT_FORMAT: self.output_format(query),
        }
        factors = [
            ComplexityFactor(
                type=t,
                weight=self.weights[t],
                value=values[t],
                description=FACTOR_DESCRIPTIONS[t],
            )
            for t in FactorType
        ]

        score = min(1.0, max(0.0, score_factors(values, self.weights)))
        level = self.classify(score)

        return ComplexityAnalysis(
            level=level,
            score=score,
            factors=factors,
            detected_patterns=self.detect_patterns(query, factors),
            reasoning=self._reasoning(level, score, factors),
            token_estimate=math.ceil(len(query) / 4),
        )

    def classify(self, score: float) -> ComplexityLevel:
        if score <= self.low_threshold:
            return ComplexityLevel.LOW
        if score <= self.medium_threshold:
            return ComplexityLevel.MEDIUM
        return ComplexityLevel.HIGH

    # -- factors ----------------------------------------------------------

    @staticmethod
    def query_length(query: str) -> float:
        chars = len(query)
        words = len(query.split())
        if chars < 100 or words < 20:
            return 0.1
        if chars < 300 or words < 60:
            return 0.3
        if chars < 800 or words < 150:
            return 0.6
        return 0.9

    @staticmethod
    def technical_terms(query: str) -> float:
        words = len(query.split())
        if words == 0:
            return 0.0
        count = _count_matches(TECHNICAL_PATTERNS, query)
        return min(count / words * 3, 1.0)

    @staticmethod
    def multi_step(query: str) -> float:
        return min(_count_matches(MULTI_STEP_PATTERNS, query) * 0.15, 1.0)

    @staticmethod
    def context_depth(request: LLMRequest) -> float:
        options = request.options
        depth = 0.0
        if request.metadata.session_id:
            depth += 1
        if request.metadata.user_preference:
            depth += 1
        if options.max_tokens is not None and options.max_tokens > 2000:
            depth += 1
        if options.temperature is not None and options.temperature != constants.DEFAULT_TEMPERATURE:
            depth += 0.5
        if options.stop_sequences:
            depth += 0.5
        return min(depth * 0.2, 1.0)

    @staticmethod
    def output_format(query: str) -> float:
        value = sum(increment for pattern, increment in FORMAT_SIGNALS if pattern.search(query))
        return min(value, 1.0)

    # -- diagnostics ------------------------------------------------------

    @staticmethod
    def detect_patterns(query: str, factors: List[ComplexityFactor]) -> List[str]:
        """Named patterns for diagnostics. They never influence the score."""
        values = {f.type: f.value for f in factors}
        patterns = []
        if TRAVEL_PATTERN.search(query):
            patterns.append("travel_planning")
        if ITINERARY_PATTERN.search(query):
            patterns.append("itinerary_generation")
        if sum(1 for v in values.values() if v > 0.7) > 2:
            patterns.append("high_complexity_multi_factor")
        if values[FactorType.MULTI_STEP] > 0.5:
            patterns.append("multi_step_reasoning")
        if values[FactorType.TECHNICAL_TERMS] > 0.6:
            patterns.append("technical_content")
        return patterns

    @staticmethod
    def _reasoning(level: ComplexityLevel, score: float, factors: List[ComplexityFactor]) -> str:
        top = sorted(factors, key=lambda f: f.value * f.weight, reverse=True)[:3]
        summary = ", ".join(f"{f.type.value} ({f.value:.2f})" for f in top)
        return f"Complexity level: {level.value} (score: {score:.3f}). Key factors: {summary}"
