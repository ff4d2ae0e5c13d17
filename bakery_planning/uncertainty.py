"""
Demand variability and safety buffer for weekly production.

This module turns the dispersion of historical weekly sales into a safety
buffer expressed in absolute units, sized by the configured posture.

Mathematical Foundation:
    σ = sqrt( Σ(x_i - mean)² / (n - 1) )       (sample std, 0 for n < 2)
    buffer = k × σ

    k per posture (one-sided normal service level):
        conservador  k = 1.00   ≈ 84%
        equilibrado  k = 1.28   ≈ 90%
        agressivo    k = 1.65   ≈ 95%

    Lower k = smaller buffer = higher stockout risk but less waste.

    The blended strategy uses a flat percentage of predicted demand
    instead (buffer = demand × buffer_pct); σ is still reported.

The buffer is additive to predicted demand and is applied BEFORE the
loss-rate inversion in the production composer.
"""

import statistics
from dataclasses import dataclass
from typing import Sequence

from .analytics.planning_settings import PlanningConfig
from .domain.models import ForecastStrategy, WeeklyBucket


@dataclass(frozen=True)
class BufferEstimate:
    """Safety buffer and the values it was derived from."""
    sigma: float
    k: float
    service_level: float
    buffer_pct: float
    buffer_units: float
    method: str  # "k_sigma" | "flat_pct"


def sample_std(values: Sequence[float]) -> float:
    """
    Sample standard deviation (n - 1 denominator).

    Returns:
        float: 0.0 for fewer than 2 samples

    Examples:
        >>> sample_std([2, 4, 4, 4, 5, 5, 7, 9])
        2.138...
        >>> sample_std([5.0])
        0.0
    """
    if len(values) < 2:
        return 0.0
    return statistics.stdev([float(v) for v in values])


def buffer_units(sigma: float, k: float) -> float:
    """Absolute extra units k × σ (never negative)."""
    return max(0.0, k * sigma)


def safety_buffer(
    buckets: Sequence[WeeklyBucket],
    config: PlanningConfig,
    predicted_demand: float,
) -> BufferEstimate:
    """
    Compute the safety buffer for one product.

    σ is taken over the raw (undamped) sales of buckets with data.

    Args:
        buckets: Weekly buckets (oldest first)
        config: Resolved planning configuration
        predicted_demand: Demand estimate (used by the flat-percentage buffer)

    Returns:
        BufferEstimate
    """
    sigma = sample_std([b.sales for b in buckets if b.has_data])
    profile = config.profile

    if config.strategy is ForecastStrategy.BLENDED:
        units = max(0.0, predicted_demand * config.buffer_pct)
        method = "flat_pct"
    else:
        units = buffer_units(sigma, profile.k)
        method = "k_sigma"

    return BufferEstimate(
        sigma=sigma,
        k=profile.k,
        service_level=profile.service_level,
        buffer_pct=config.buffer_pct,
        buffer_units=units,
        method=method,
    )
