"""
Tests for weekly demand estimation.

Validates:
1. Recency-weighted moving average
2. Blend weight normalization
3. Trend detection and posture caps (blended strategy)
4. Default path with no history
"""

from datetime import date, timedelta

import pytest

from bakery_planning.analytics.planning_settings import POSTURE_PROFILES, PlanningConfig
from bakery_planning.domain.models import ForecastStrategy, Posture, ReferenceAggregates, Trend, WeeklyBucket
from bakery_planning.forecast import (
    blend_weights,
    clamp_growth,
    estimate_demand,
    growth_rate,
    trend_label,
    valid_buckets,
    weighted_moving_average,
)


def _buckets(sales, damping=None):
    start = date(2026, 1, 5)
    damping = damping or [1.0] * len(sales)
    return [
        WeeklyBucket(start=start + timedelta(weeks=i), sales=s, damping=d)
        for i, (s, d) in enumerate(zip(sales, damping))
    ]


class TestWeightedMovingAverage:
    def test_recency_weights(self):
        """Newer weeks carry linearly more weight."""
        # (10×1 + 20×2) / 3
        assert weighted_moving_average([10, 20]) == pytest.approx(50 / 3)

    def test_equal_values_exact(self):
        """Identical inputs come back exactly, without float drift."""
        assert weighted_moving_average([7.3] * 9) == 7.3

    def test_empty(self):
        """No values average to zero."""
        assert weighted_moving_average([]) == 0.0

    def test_valid_buckets_skip_empty_weeks(self):
        """Weeks without sales are left out of the average."""
        buckets = _buckets([10, 0, 20])
        assert [b.sales for b in valid_buckets(buckets)] == [10, 20]


class TestBlendWeights:
    """Posture weights over the reference components available."""

    def test_all_components_available(self):
        """Both references present: the posture's three-way weights."""
        weights = blend_weights(POSTURE_PROFILES[Posture.BALANCED], True, True)
        assert weights == pytest.approx({"recency": 0.6, "year_ago": 0.3, "baseline_12m": 0.1})

    @pytest.mark.parametrize("posture,recency,baseline", [
        (Posture.CONSERVATIVE, 0.65, 0.35),
        (Posture.BALANCED, 0.75, 0.25),
        (Posture.AGGRESSIVE, 0.85, 0.15),
    ])
    def test_missing_year_ago_uses_fixed_table(self, posture, recency, baseline):
        """No year-ago data: fixed recency / 12-month pair per posture."""
        weights = blend_weights(POSTURE_PROFILES[posture], False, True)
        assert weights["recency"] == pytest.approx(recency)
        assert weights["year_ago"] == 0.0
        assert weights["baseline_12m"] == pytest.approx(baseline)

    @pytest.mark.parametrize("posture,recency,year_ago", [
        (Posture.CONSERVATIVE, 0.50, 0.50),
        (Posture.BALANCED, 0.65, 0.35),
        (Posture.AGGRESSIVE, 0.75, 0.25),
    ])
    def test_missing_baseline_uses_fixed_table(self, posture, recency, year_ago):
        """No 12-month baseline: fixed recency / year-ago pair per posture."""
        weights = blend_weights(POSTURE_PROFILES[posture], True, False)
        assert weights["recency"] == pytest.approx(recency)
        assert weights["year_ago"] == pytest.approx(year_ago)
        assert weights["baseline_12m"] == 0.0

    def test_no_references_recency_only(self):
        """Neither reference: recency carries all the weight."""
        weights = blend_weights(POSTURE_PROFILES[Posture.AGGRESSIVE], False, False)
        assert weights == {"recency": 1.0, "year_ago": 0.0, "baseline_12m": 0.0}

    @pytest.mark.parametrize("has_year_ago", [True, False])
    @pytest.mark.parametrize("has_baseline", [True, False])
    @pytest.mark.parametrize("posture", list(Posture))
    def test_weights_always_sum_to_one(self, posture, has_year_ago, has_baseline):
        """Every posture and availability combination sums to 1."""
        weights = blend_weights(POSTURE_PROFILES[posture], has_year_ago, has_baseline)
        assert sum(weights.values()) == pytest.approx(1.0)
        assert all(w >= 0 for w in weights.values())


class TestTrend:
    def test_growth_rate_between_halves(self):
        """Growth compares the mean of the newer half with the older half."""
        assert growth_rate([100, 100, 120, 120]) == pytest.approx(0.2)
        assert growth_rate([100, 100, 100, 100, 100]) == 0.0

    def test_growth_rate_degenerate(self):
        """Too few weeks or a zero older half means no growth."""
        assert growth_rate([5]) == 0.0
        assert growth_rate([0, 0, 10, 10]) == 0.0

    def test_clamp_growth(self):
        """Growth is clamped symmetrically to the posture cap."""
        assert clamp_growth(0.5, 0.12) == 0.12
        assert clamp_growth(-0.5, 0.12) == -0.12
        assert clamp_growth(0.05, 0.12) == 0.05

    def test_trend_label(self):
        """Trend labels follow the growth threshold; short series are stable."""
        assert trend_label([100, 100, 110, 110]) is Trend.GROWING
        assert trend_label([100, 100, 90, 90]) is Trend.DECREASING
        assert trend_label([100, 100, 105, 105]) is Trend.STABLE
        assert trend_label([100, 200]) is Trend.STABLE  # too short


class TestEstimateDemandSimple:
    def test_wma_of_damped_sales(self):
        """Event weeks enter the average damped."""
        config = PlanningConfig()
        buckets = _buckets([100, 100, 200, 100], damping=[1.0, 1.0, 0.5, 1.0])

        estimate = estimate_demand(buckets, config)

        assert estimate.recency_average == pytest.approx(100.0)
        assert estimate.predicted_demand == pytest.approx(100.0)
        assert estimate.weeks_with_data == 4
        assert not estimate.used_default

    def test_calendar_multiplier_applied(self):
        """Target-week events scale the prediction."""
        estimate = estimate_demand(_buckets([50] * 6), PlanningConfig(), calendar_multiplier=1.2)
        assert estimate.predicted_demand == pytest.approx(60.0)

    def test_simple_strategy_has_no_trend(self):
        """The simple strategy never applies growth."""
        estimate = estimate_demand(_buckets([50, 50, 100, 100]), PlanningConfig())
        assert estimate.growth_applied == 0.0

    def test_no_history_uses_default(self):
        """No sales at all falls back to the default suggestion, unscaled."""
        config = PlanningConfig(default_suggestion=12)
        estimate = estimate_demand(_buckets([0, 0, 0]), config, calendar_multiplier=1.5)

        assert estimate.used_default
        assert estimate.predicted_demand == 12
        assert estimate.weeks_with_data == 0


class TestEstimateDemandBlended:
    @pytest.fixture
    def config(self):
        return PlanningConfig(strategy=ForecastStrategy.BLENDED)

    def test_blend_with_reference(self, config):
        """Recency, year-ago and 12-month averages blend with the balanced weights."""
        reference = ReferenceAggregates(year_ago_sales=330, trailing_12m_sales=5200)

        estimate = estimate_demand(_buckets([100] * 8), config, reference=reference)

        assert estimate.year_ago_average == pytest.approx(110)
        assert estimate.baseline_12m_average == pytest.approx(100)
        expected = 0.6 * 100 + 0.3 * 110 + 0.1 * 100
        assert estimate.blended_demand == pytest.approx(expected)
        assert estimate.predicted_demand == pytest.approx(expected)

    def test_missing_year_ago_uses_two_way_weights(self, config):
        """Only a 12-month baseline: balanced posture blends 0.75 / 0.25."""
        reference = ReferenceAggregates(trailing_12m_sales=7800)

        estimate = estimate_demand(_buckets([100] * 8), config, reference=reference)

        assert estimate.blend_weights == pytest.approx({"recency": 0.75, "year_ago": 0.0, "baseline_12m": 0.25})
        assert estimate.baseline_12m_average == pytest.approx(150)
        assert estimate.predicted_demand == pytest.approx(0.75 * 100 + 0.25 * 150)

    def test_without_reference_behaves_as_recency(self, config):
        """No references means the recency average alone."""
        estimate = estimate_demand(_buckets([100] * 8), config)

        assert estimate.blend_weights["recency"] == 1.0
        assert estimate.predicted_demand == pytest.approx(100)

    def test_early_history_recency_only(self, config):
        """Under four weeks of data, references and trend are ignored."""
        reference = ReferenceAggregates(year_ago_sales=900, trailing_12m_sales=5200)
        estimate = estimate_demand(_buckets([100, 100, 100]), config, reference=reference)

        assert estimate.blend_weights["recency"] == 1.0
        assert estimate.growth_applied == 0.0
        assert estimate.predicted_demand == pytest.approx(100)

    @pytest.mark.parametrize("posture,cap", [
        (Posture.CONSERVATIVE, 0.05),
        (Posture.BALANCED, 0.12),
        (Posture.AGGRESSIVE, 0.22),
    ])
    def test_growth_clamped_to_posture_cap(self, posture, cap):
        """Steep growth is capped per posture."""
        config = PlanningConfig(strategy=ForecastStrategy.BLENDED, posture=posture)
        estimate = estimate_demand(_buckets([100, 100, 200, 200]), config)

        assert estimate.growth_rate == pytest.approx(1.0)
        assert estimate.growth_applied == pytest.approx(cap)
        assert estimate.predicted_demand == pytest.approx(estimate.blended_demand * (1 + cap))

    def test_demand_never_negative(self, config):
        """A zero multiplier floors demand at zero."""
        estimate = estimate_demand(_buckets([10, 10, 1, 1]), config, calendar_multiplier=0.0)
        assert estimate.predicted_demand == 0.0
