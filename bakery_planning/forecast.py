"""
Weekly demand estimation for production planning.

Model: recency-weighted moving average (WMA) of calendar-damped weekly sales.

Approach:
- WMA: weight i for the i-th valid week (oldest = 1), so the latest
  week weighs most; damped_sales = sales × calendar damping
- Blended strategy (>= 4 weeks with data): mix WMA with the year-ago
  weekly equivalent (3-week total / 3) and the trailing 12-month weekly
  equivalent (total / 52); posture decides the weights, with a fixed
  two-way table per posture when one reference is missing
- Trend (blended, >= 4 weeks): growth between older and newer halves,
  clamped to the posture cap, applied as demand × (1 + growth)
- Target week: demand × calendar multiplier

Fallback for no history: the configured default suggestion.

Output: Always non-negative.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .analytics.planning_settings import PlanningConfig, PostureProfile
from .config import (
    MIN_WEEKS_FOR_BLEND,
    MIN_WEEKS_FOR_TREND,
    TREND_LABEL_THRESHOLD,
    WEEKS_PER_YEAR,
    YEAR_AGO_WINDOW_WEEKS,
)
from .domain.models import ForecastStrategy, ReferenceAggregates, Trend, WeeklyBucket


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DemandEstimate:
    """
    Predicted weekly demand plus every intermediate value.

    Attributes:
        predicted_demand: Final demand for the target week (units)
        recency_average: WMA of damped weekly sales
        year_ago_average: Year-ago weekly equivalent (0 if unavailable)
        baseline_12m_average: Trailing 12-month weekly equivalent (0 if unavailable)
        blend_weights: {"recency", "year_ago", "baseline_12m"}; sums to 1
        blended_demand: Demand after blending, before trend/calendar
        growth_rate: Raw older→newer growth (0 when not computed)
        growth_applied: Clamped growth actually applied
        calendar_multiplier: Target-week multiplier applied last
        weeks_with_data: Number of valid buckets
        used_default: True when no history existed
        strategy_note: Human-readable summary of the path taken
    """
    predicted_demand: float
    recency_average: float = 0.0
    year_ago_average: float = 0.0
    baseline_12m_average: float = 0.0
    blend_weights: Dict[str, float] = field(default_factory=lambda: {"recency": 1.0, "year_ago": 0.0, "baseline_12m": 0.0})
    blended_demand: float = 0.0
    growth_rate: float = 0.0
    growth_applied: float = 0.0
    calendar_multiplier: float = 1.0
    weeks_with_data: int = 0
    used_default: bool = False
    strategy_note: str = ""


def valid_buckets(buckets: Sequence[WeeklyBucket]) -> List[WeeklyBucket]:
    """Buckets with sales + losses > 0, order preserved."""
    return [b for b in buckets if b.has_data]


def weighted_moving_average(values: Sequence[float]) -> float:
    """
    Recency-weighted mean Σ(v_i × i) / Σ(i), i = 1..n oldest first.

    Equal inputs return that value exactly; empty input returns 0.

    Example:
        >>> weighted_moving_average([10, 20])
        16.666666666666668
    """
    if len(values) == 0:
        return 0.0
    arr = np.asarray(values, dtype=float)
    if np.all(arr == arr[0]):
        return float(arr[0])
    weights = np.arange(1, len(arr) + 1, dtype=float)
    return float(np.dot(arr, weights) / weights.sum())


def recency_average(buckets: Sequence[WeeklyBucket]) -> float:
    """WMA over valid buckets of their calendar-damped sales."""
    return weighted_moving_average([b.damped_sales for b in valid_buckets(buckets)])


def blend_weights(
    profile: PostureProfile,
    has_year_ago: bool,
    has_baseline: bool,
) -> Dict[str, float]:
    """
    Blend weights for the components available to one product.

    Both references present → the posture's three-way weights; one missing →
    the posture's fixed two-way table for that case; neither → recency only.
    The result always sums to 1.
    """
    if has_year_ago and has_baseline:
        w_rec, w_ano, w_base = profile.blend_weights
    elif has_baseline:
        w_rec, w_base = profile.without_year_ago
        w_ano = 0.0
    elif has_year_ago:
        w_rec, w_ano = profile.without_baseline
        w_base = 0.0
    else:
        return {"recency": 1.0, "year_ago": 0.0, "baseline_12m": 0.0}

    total = w_rec + w_ano + w_base
    return {"recency": w_rec / total, "year_ago": w_ano / total, "baseline_12m": w_base / total}



def _halves(values: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    arr = np.asarray(values, dtype=float)
    half = max(1, len(arr) // 2)
    return arr[:half], arr[len(arr) - half:]


def growth_rate(values: Sequence[float]) -> float:
    """
    Relative growth of the newer half mean over the older half mean.

    Returns 0 for fewer than 2 values or when the older mean is 0.
    """
    if len(values) < 2:
        return 0.0
    older, newer = _halves(values)
    older_mean = float(older.mean())
    if older_mean <= 0:
        return 0.0
    return (float(newer.mean()) - older_mean) / older_mean


def clamp_growth(rate: float, cap: float) -> float:
    return max(-cap, min(cap, rate))


def trend_label(values: Sequence[float], min_weeks: int = MIN_WEEKS_FOR_TREND) -> Trend:
    """Display trend: ±8% growth between halves; stable with little history."""
    if len(values) < min_weeks:
        return Trend.STABLE
    rate = growth_rate(values)
    if rate > TREND_LABEL_THRESHOLD:
        return Trend.GROWING
    if rate < -TREND_LABEL_THRESHOLD:
        return Trend.DECREASING
    return Trend.STABLE


def estimate_demand(
    buckets: Sequence[WeeklyBucket],
    config: PlanningConfig,
    calendar_multiplier: float = 1.0,
    reference: Optional[ReferenceAggregates] = None,
) -> DemandEstimate:
    """
    Estimate target-week demand for one product.

    Args:
        buckets: Weekly buckets (oldest first) carrying calendar damping
        config: Resolved planning configuration
        calendar_multiplier: Target-week multiplier (see calendar_impact)
        reference: Year-ago / 12-month totals (blended strategy only)

    Returns:
        DemandEstimate
    """
    valid = valid_buckets(buckets)
    n_weeks = len(valid)

    if n_weeks == 0:
        return DemandEstimate(
            predicted_demand=config.default_suggestion,
            blended_demand=config.default_suggestion,
            weeks_with_data=0,
            used_default=True,
            strategy_note=f"No history. Using default suggestion of {config.default_suggestion:g}.",
        )

    rec_avg = recency_average(valid)

    if config.strategy is ForecastStrategy.SIMPLE:
        demand = max(0.0, rec_avg * calendar_multiplier)
        return DemandEstimate(
            predicted_demand=demand,
            recency_average=rec_avg,
            blended_demand=rec_avg,
            calendar_multiplier=calendar_multiplier,
            weeks_with_data=n_weeks,
            strategy_note=f"WMA of {n_weeks} wk.",
        )

    reference = reference or ReferenceAggregates()
    year_ago_avg = reference.year_ago_sales / YEAR_AGO_WINDOW_WEEKS
    baseline_avg = reference.trailing_12m_sales / WEEKS_PER_YEAR

    if n_weeks < MIN_WEEKS_FOR_BLEND:
        weights = {"recency": 1.0, "year_ago": 0.0, "baseline_12m": 0.0}
        note = f"Early history ({n_weeks} wk). Recency only, no trend."
    else:
        weights = blend_weights(
            config.profile,
            reference.has_year_ago,
            reference.has_trailing_12m,
        )
        note = (
            f"Blend: {weights['recency']:.0%} recency + {weights['year_ago']:.0%} year-ago"
            f" + {weights['baseline_12m']:.0%} 12-month baseline."
        )

    blended = (
        weights["recency"] * rec_avg
        + weights["year_ago"] * year_ago_avg
        + weights["baseline_12m"] * baseline_avg
    )

    raw_growth = 0.0
    applied = 0.0
    if n_weeks >= MIN_WEEKS_FOR_TREND:
        raw_growth = growth_rate([b.sales for b in valid])
        applied = clamp_growth(raw_growth, config.profile.growth_cap)
        if applied != raw_growth:
            logger.debug("Growth %.4f clamped to %.4f", raw_growth, applied)

    demand = max(0.0, blended * (1.0 + applied) * calendar_multiplier)

    return DemandEstimate(
        predicted_demand=demand,
        recency_average=rec_avg,
        year_ago_average=year_ago_avg,
        baseline_12m_average=baseline_avg,
        blend_weights=weights,
        blended_demand=blended,
        growth_rate=raw_growth,
        growth_applied=applied,
        calendar_multiplier=calendar_multiplier,
        weeks_with_data=n_weeks,
        strategy_note=note,
    )
