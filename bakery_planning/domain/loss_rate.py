"""
Loss-rate (spoilage) estimation.

Weekly ratio = losses / (sales + losses). The median across weeks is used
instead of the mean so a few catastrophic weeks (spoiled batch, fire sale)
do not dominate the estimate.

Blended strategy: with a year-ago rate available the result is
0.70 × recent median + 0.30 × year-ago rate; without recent weeks the
year-ago rate is used alone.

The rate used in production math is clamped to [0, 0.90].
"""

import statistics
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..config import MAX_LOSS_RATE, YEAR_AGO_LOSS_WEIGHT
from .models import ForecastStrategy, ReferenceAggregates, WeeklyBucket


@dataclass(frozen=True)
class LossRateEstimate:
    raw_rate: float      # before clamping
    rate: float          # clamped, used downstream
    recent_median: float
    year_ago_rate: Optional[float]
    n_weeks: int
    source: str          # "none" | "recent" | "year_ago" | "blend"

    @property
    def clamped(self) -> bool:
        return self.rate != self.raw_rate


def weekly_loss_ratios(buckets: Sequence[WeeklyBucket]) -> List[float]:
    """losses / (sales + losses) for every bucket with movement."""
    return [
        b.losses / (b.sales + b.losses)
        for b in buckets
        if (b.sales + b.losses) > 0
    ]


def median(values: Sequence[float]) -> float:
    """Median, 0.0 for no values."""
    if not values:
        return 0.0
    return float(statistics.median(values))


def clamp_loss_rate(rate: float) -> float:
    return max(0.0, min(rate, MAX_LOSS_RATE))


def year_ago_loss_rate(reference: Optional[ReferenceAggregates]) -> Optional[float]:
    """Year-ago loss ratio, or None when there is no year-ago sales data."""
    if reference is None or not reference.has_year_ago:
        return None
    movement = reference.year_ago_sales + reference.year_ago_losses
    return reference.year_ago_losses / movement


def estimate_loss_rate(
    buckets: Sequence[WeeklyBucket],
    strategy: ForecastStrategy = ForecastStrategy.SIMPLE,
    reference: Optional[ReferenceAggregates] = None,
) -> LossRateEstimate:
    """
    Estimate the loss rate for one product.

    Args:
        buckets: Weekly buckets (oldest first)
        strategy: SIMPLE ignores year-ago data
        reference: Year-ago totals (blended strategy)

    Returns:
        LossRateEstimate
    """
    ratios = weekly_loss_ratios(buckets)
    recent = median(ratios)
    year_ago = year_ago_loss_rate(reference) if strategy is ForecastStrategy.BLENDED else None

    if ratios and year_ago is not None:
        raw = (1.0 - YEAR_AGO_LOSS_WEIGHT) * recent + YEAR_AGO_LOSS_WEIGHT * year_ago
        source = "blend"
    elif year_ago is not None:
        raw = year_ago
        source = "year_ago"
    elif ratios:
        raw = recent
        source = "recent"
    else:
        raw = 0.0
        source = "none"

    return LossRateEstimate(
        raw_rate=raw,
        rate=clamp_loss_rate(raw),
        recent_median=recent,
        year_ago_rate=year_ago,
        n_weeks=len(ratios),
        source=source,
    )
