"""
Tests for demand variability and the safety buffer.
"""

from datetime import date, timedelta

import pytest

from bakery_planning.analytics.planning_settings import PlanningConfig
from bakery_planning.domain.models import ForecastStrategy, Posture, WeeklyBucket
from bakery_planning.uncertainty import buffer_units, safety_buffer, sample_std


def _buckets(sales, damping=1.0):
    start = date(2026, 1, 5)
    return [WeeklyBucket(start=start + timedelta(weeks=i), sales=s, damping=damping) for i, s in enumerate(sales)]


class TestSampleStd:
    def test_known_values(self):
        """Sample (n - 1) deviation of a textbook series."""
        assert sample_std([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.13809, rel=1e-4)

    def test_short_series(self):
        """Fewer than two samples have no spread."""
        assert sample_std([]) == 0.0
        assert sample_std([5.0]) == 0.0

    def test_constant_series(self):
        """Constant sales have zero spread."""
        assert sample_std([10, 10, 10]) == 0.0


class TestSafetyBuffer:
    def test_k_sigma_buffer(self):
        """Simple strategy buffer is k × σ with the posture's service level."""
        sales = [90, 110, 100, 100]
        buffer = safety_buffer(_buckets(sales), PlanningConfig(), predicted_demand=100)

        assert buffer.method == "k_sigma"
        assert buffer.sigma == pytest.approx(sample_std(sales))
        assert buffer.buffer_units == pytest.approx(1.28 * sample_std(sales))
        assert buffer.service_level == 0.90

    def test_sigma_uses_raw_sales_of_weeks_with_data(self):
        """σ reads undamped sales and skips empty weeks."""
        buckets = _buckets([90, 0, 110], damping=0.5)
        buffer = safety_buffer(buckets, PlanningConfig(), predicted_demand=100)
        assert buffer.sigma == pytest.approx(sample_std([90, 110]))

    def test_buffer_monotonic_in_k(self):
        """A bolder posture never shrinks the buffer."""
        buckets = _buckets([80, 120, 95, 105, 100])
        units = [
            safety_buffer(buckets, PlanningConfig(posture=p), 100).buffer_units
            for p in (Posture.CONSERVATIVE, Posture.BALANCED, Posture.AGGRESSIVE)
        ]
        assert units[0] < units[1] < units[2]

    def test_flat_percentage_for_blended(self):
        """Blended strategy buffer is a flat share of demand; σ is still reported."""
        config = PlanningConfig(strategy=ForecastStrategy.BLENDED, buffer_pct=0.08)
        buffer = safety_buffer(_buckets([90, 110]), config, predicted_demand=150)

        assert buffer.method == "flat_pct"
        assert buffer.buffer_units == pytest.approx(12.0)
        assert buffer.sigma > 0

    def test_buffer_units_never_negative(self):
        """Negative spread gives no buffer."""
        assert buffer_units(-1.0, 1.28) == 0.0
        assert buffer_units(2.0, 1.5) == 3.0
