"""
Tests for the complexity analyzer.

Covers the individual factor heuristics, classification thresholds, the
example queries from the routing guide, and property-based checks for score
bounds, monotonicity and determinism.
"""

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from hylo.config import RoutingConfig
from hylo.core.errors import InvalidConfigError
from hylo.providers.base import ComplexityLevel
from hylo.routing.complexity import (
    ComplexityAnalyzer,
    FactorType,
    score_factors,
)

HIGH_COMPLEXITY_QUERY = "\n".join(
    f"{i}. Plan the budget, itinerary and accommodation for multiple cities with accessible transportation."
    for i in range(1, 14)
) + "\nGive a detailed table in json with a section per city and accessible accommodations."


# =============================================================================
# Test Strategies
# =============================================================================

factor_values = st.fixed_dictionaries(
    {t: st.floats(min_value=0.0, max_value=1.0, allow_nan=False) for t in FactorType}
)


@st.composite
def normalized_weights(draw):
    raw = [draw(st.floats(min_value=0.01, max_value=1.0)) for _ in FactorType]
    total = sum(raw)
    return {t: w / total for t, w in zip(FactorType, raw)}


query_text = st.text(
    alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd", "Zs", "Po")),
    max_size=600,
)


# =============================================================================
# Scenarios
# =============================================================================


class TestScenarios:

    def test_short_restaurant_query_is_low(self, make_request):
        analysis = ComplexityAnalyzer().analyze(make_request("Best restaurants in Tokyo"))

        assert analysis.level == ComplexityLevel.LOW
        assert analysis.score < 0.3
        assert analysis.factor(FactorType.TECHNICAL_TERMS).value == 0.0
        assert analysis.factor(FactorType.MULTI_STEP).value == 0.0

    def test_long_planning_query_is_high(self, make_request):
        assert len(HIGH_COMPLEXITY_QUERY) > 1000
        request = make_request(HIGH_COMPLEXITY_QUERY, temperature=1.0)

        analysis = ComplexityAnalyzer().analyze(request)

        assert analysis.level == ComplexityLevel.HIGH
        assert analysis.score > 0.7
        assert analysis.factor(FactorType.TECHNICAL_TERMS).value > 0.5
        assert analysis.factor(FactorType.MULTI_STEP).value > 0.5
        assert analysis.factor(FactorType.QUERY_LENGTH).value == 0.9

    def test_empty_query_has_minimum_factors(self, make_request):
        analysis = ComplexityAnalyzer().analyze(make_request(""))

        assert analysis.level == ComplexityLevel.LOW
        assert analysis.token_estimate == 0
        assert analysis.factor(FactorType.QUERY_LENGTH).value == 0.1
        assert analysis.factor(FactorType.TECHNICAL_TERMS).value == 0.0
        assert analysis.factor(FactorType.MULTI_STEP).value == 0.0
        assert analysis.factor(FactorType.CONTEXT_DEPTH).value == 0.0
        assert analysis.factor(FactorType.OUTPUT_FORMAT).value == 0.0


# =============================================================================
# Factor heuristics
# =============================================================================


class TestFactors:

    @pytest.mark.parametrize(
        "chars,words,expected",
        [
            (50, 10, 0.1),
            (150, 10, 0.1),
            (150, 30, 0.3),
            (400, 70, 0.6),
            (400, 40, 0.3),
            (900, 160, 0.9),
            (900, 100, 0.6),
        ],
    )
    def test_query_length_bands(self, chars, words, expected):
        query = " ".join(["w"] * words)
        query += "x" * max(0, chars - len(query))
        assert ComplexityAnalyzer.query_length(query) == expected

    def test_technical_terms_density_is_capped(self):
        assert ComplexityAnalyzer.technical_terms("budget itinerary booking") == 1.0

    def test_technical_terms_density(self):
        # 1 term in 6 words -> 1/6 * 3
        value = ComplexityAnalyzer.technical_terms("what is the budget for lunch")
        assert value == pytest.approx(0.5)

    def test_multi_step_counts_markers(self):
        assert ComplexityAnalyzer.multi_step("first see Rome then Florence") == pytest.approx(0.3)

    def test_bullet_markers_only_count_at_line_start(self):
        inline = ComplexityAnalyzer.multi_step("a well-known spot")
        bullets = ComplexityAnalyzer.multi_step("- Rome\n- Paris\n* Lisbon")
        assert inline == 0.0
        assert bullets == pytest.approx(0.45)

    def test_context_depth_signals(self, make_request):
        request = make_request(
            "x",
            session_id="s1",
            user_preference="groq",
            max_tokens=3000,
            temperature=0.2,
            stop_sequences=("END",),
        )
        # 1 + 1 + 1 + 0.5 + 0.5 = 4 -> 0.8
        assert ComplexityAnalyzer.context_depth(request) == pytest.approx(0.8)

    def test_default_temperature_adds_no_depth(self, make_request):
        assert ComplexityAnalyzer.context_depth(make_request("x", temperature=0.7)) == 0.0

    def test_output_format_sums_distinct_signals(self):
        assert ComplexityAnalyzer.output_format("a detailed table") == pytest.approx(0.5)
        assert ComplexityAnalyzer.output_format("json table detailed section") == pytest.approx(1.0)


class TestPatterns:

    def test_detects_travel_and_itinerary(self, make_request):
        analysis = ComplexityAnalyzer().analyze(make_request("Build an itinerary for my trip"))
        assert "travel_planning" in analysis.detected_patterns
        assert "itinerary_generation" in analysis.detected_patterns

    def test_patterns_do_not_change_score(self, make_request):
        analyzer = ComplexityAnalyzer()
        with_trip = analyzer.analyze(make_request("nice trip"))
        without = analyzer.analyze(make_request("nice walk"))
        assert with_trip.score == without.score

    def test_reasoning_names_level_and_factors(self, make_request):
        analysis = ComplexityAnalyzer().analyze(make_request(HIGH_COMPLEXITY_QUERY))
        assert analysis.reasoning.startswith("Complexity level: high")
        assert "technical_terms" in analysis.reasoning


# =============================================================================
# Configuration
# =============================================================================


class TestConfiguration:

    def test_thresholds_are_inclusive_upper_bounds(self):
        analyzer = ComplexityAnalyzer()
        assert analyzer.classify(0.3) == ComplexityLevel.LOW
        assert analyzer.classify(0.30001) == ComplexityLevel.MEDIUM
        assert analyzer.classify(0.7) == ComplexityLevel.MEDIUM
        assert analyzer.classify(0.70001) == ComplexityLevel.HIGH

    def test_weights_must_sum_to_one(self):
        weights = {t.value: 0.3 for t in FactorType}
        with pytest.raises(InvalidConfigError):
            ComplexityAnalyzer(weights=weights)

    def test_unknown_factor_rejected(self):
        with pytest.raises(InvalidConfigError):
            ComplexityAnalyzer(weights={"vibes": 1.0})

    def test_thresholds_must_increase(self):
        with pytest.raises(InvalidConfigError):
            ComplexityAnalyzer(low_threshold=0.8, medium_threshold=0.5)

    def test_from_config(self):
        analyzer = ComplexityAnalyzer.from_config(RoutingConfig(low_threshold=0.2, medium_threshold=0.6))
        assert analyzer.low_threshold == 0.2
        assert analyzer.medium_threshold == 0.6


# =============================================================================
# Properties
# =============================================================================


class TestProperties:

    @given(values=factor_values, weights=normalized_weights())
    @settings(max_examples=100)
    def test_score_within_unit_interval(self, values, weights):
        assert 0.0 <= score_factors(values, weights) <= 1.0 + 1e-9

    @given(a=factor_values, b=factor_values, weights=normalized_weights())
    @settings(max_examples=100)
    def test_monotonic_in_every_factor(self, a, b, weights):
        low = {t: min(a[t], b[t]) for t in FactorType}
        high = {t: max(a[t], b[t]) for t in FactorType}
        analyzer = ComplexityAnalyzer()

        low_score = score_factors(low, weights)
        high_score = score_factors(high, weights)

        assert low_score <= high_score + 1e-9
        order = [ComplexityLevel.LOW, ComplexityLevel.MEDIUM, ComplexityLevel.HIGH]
        assert order.index(analyzer.classify(low_score)) <= order.index(analyzer.classify(high_score))

    @given(query=query_text)
    @settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_analysis_is_deterministic(self, make_request, query):
        analyzer = ComplexityAnalyzer()
        request = make_request(query)
        assert analyzer.analyze(request) == analyzer.analyze(request)

    @given(query=query_text)
    @settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_analyzed_score_in_bounds(self, make_request, query):
        analysis = ComplexityAnalyzer().analyze(make_request(query))
        assert 0.0 <= analysis.score <= 1.0
        assert all(0.0 <= f.value <= 1.0 for f in analysis.factors)
