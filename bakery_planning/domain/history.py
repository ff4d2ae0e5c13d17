"""
Historical window builder: raw sales/loss rows → fixed 7-day buckets.

Methodology:
1. The lookback window is [target_start - N weeks, target_start)
2. N contiguous buckets of 7 days are anchored on target_start's weekday,
   oldest first
3. Each bucket sums sales and losses; has_data = (sales + losses) > 0
4. Reference periods for the blended strategy:
   - year-ago: 3 weeks [C - 7d, C + 13d] where C = target_start one year earlier
   - trailing 12 months: [target_start - 12 months, target_start)

Design Invariants:
- Deterministic: no date.today() in this module
- Robust: a malformed row is skipped and counted, never fatal
"""

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

from ..config import YEAR_AGO_WINDOW_WEEKS
from .models import LossRecord, ReferenceAggregates, SalesRecord, TargetWeek, WeeklyBucket
from .validation import parse_day, parse_quantity


logger = logging.getLogger(__name__)

Movement = Union[SalesRecord, LossRecord]


@dataclass(frozen=True)
class CoercionResult:
    """Records grouped by product id plus the number of rows dropped."""
    by_product: Dict[str, Tuple[Movement, ...]]
    skipped: Dict[str, int]

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())


def coerce_movements(rows: Iterable[Any], record_cls: Type[Movement]) -> CoercionResult:
    """
    Turn raw rows into typed records grouped by product.

    Rows may already be SalesRecord/LossRecord instances or mappings with
    keys product_id (or produto_id), date (or data), qty (or quantidade).
    A row whose date, quantity or product id cannot be read is skipped and
    counted against its product (or "" when the product id is unreadable).
    """
    grouped: Dict[str, List[Movement]] = defaultdict(list)
    skipped: Dict[str, int] = defaultdict(int)

    for row in rows:
        if isinstance(row, record_cls):
            grouped[row.product_id].append(row)
            continue

        product_id = ""
        try:
            if not isinstance(row, Mapping):
                raise TypeError(f"unsupported row type {type(row).__name__}")
            raw_id = row.get("product_id", row.get("produto_id"))
            product_id = "" if raw_id is None else str(raw_id)
            record = record_cls(
                product_id=product_id,
                date=parse_day(row.get("date", row.get("data"))),
                qty=parse_quantity(row.get("qty", row.get("quantidade"))),
            )
        except (ValueError, TypeError, KeyError) as e:
            logger.debug("Skipping malformed %s row %r: %s", record_cls.__name__, row, e)
            skipped[product_id] += 1
            continue

        grouped[record.product_id].append(record)

    return CoercionResult(
        by_product={pid: tuple(records) for pid, records in grouped.items()},
        skipped=dict(skipped),
    )


def history_window(target_start: date, lookback_weeks: int) -> Tuple[date, date]:
    """Return (window_start, target_start); the end bound is exclusive."""
    return target_start - timedelta(weeks=lookback_weeks), target_start


def build_weekly_buckets(
    sales: Sequence[SalesRecord],
    losses: Sequence[LossRecord],
    target_start: date,
    lookback_weeks: int,
) -> List[WeeklyBucket]:
    """
    Partition one product's records into lookback_weeks 7-day buckets.

    Records outside [target_start - N weeks, target_start) are ignored.

    Returns:
        Buckets ordered oldest first, damping = 1.0
    """
    if lookback_weeks <= 0:
        return []

    window_start, _ = history_window(target_start, lookback_weeks)
    sales_per_week = [0.0] * lookback_weeks
    losses_per_week = [0.0] * lookback_weeks

    for record in sales:
        idx = _week_index(record.date, window_start, lookback_weeks)
        if idx is not None:
            sales_per_week[idx] += record.qty

    for record in losses:
        idx = _week_index(record.date, window_start, lookback_weeks)
        if idx is not None:
            losses_per_week[idx] += record.qty

    return [
        WeeklyBucket(
            start=window_start + timedelta(weeks=i),
            sales=sales_per_week[i],
            losses=losses_per_week[i],
        )
        for i in range(lookback_weeks)
    ]


def _week_index(day: date, window_start: date, n_weeks: int) -> Optional[int]:
    offset = (day - window_start).days
    if offset < 0:
        return None
    idx = offset // 7
    return idx if idx < n_weeks else None


# ---------------------------------------------------------------------------
# Reference periods (blended strategy)
# ---------------------------------------------------------------------------

def shift_years(day: date, years: int) -> date:
    """Same calendar day `years` earlier/later; Feb 29 falls back to Feb 28."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def shift_months(day: date, months: int) -> date:
    """Same day `months` away, clipped to the last valid day of the month."""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def reference_windows(target_start: date) -> Dict[str, Tuple[date, date]]:
    """
    Inclusive date windows used by the blended strategy.

    Returns:
        {"year_ago": (start, end), "trailing_12m": (start, end)}
    """
    centre = shift_years(target_start, -1)
    year_ago = (centre - timedelta(days=7), centre + timedelta(days=7 * (YEAR_AGO_WINDOW_WEEKS - 1) - 1))
    trailing = (shift_months(target_start, -12), target_start - timedelta(days=1))
    return {"year_ago": year_ago, "trailing_12m": trailing}


def _sum_between(records: Iterable[Movement], start: date, end: date) -> float:
    return sum(r.qty for r in records if start <= r.date <= end)


def aggregate_reference_periods(
    sales: Sequence[SalesRecord],
    losses: Sequence[LossRecord],
    target_start: date,
) -> ReferenceAggregates:
    """Compute year-ago and trailing-12-month totals from one product's records."""
    windows = reference_windows(target_start)
    ya_start, ya_end = windows["year_ago"]
    tr_start, tr_end = windows["trailing_12m"]
    return ReferenceAggregates(
        year_ago_sales=_sum_between(sales, ya_start, ya_end),
        year_ago_losses=_sum_between(losses, ya_start, ya_end),
        trailing_12m_sales=_sum_between(sales, tr_start, tr_end),
    )


def current_week_totals(
    sales: Sequence[SalesRecord],
    losses: Sequence[LossRecord],
    target_week: TargetWeek,
) -> Tuple[float, float]:
    """Actual (sales, losses) inside the target week, for display only."""
    return (
        _sum_between(sales, target_week.start, target_week.end),
        _sum_between(losses, target_week.start, target_week.end),
    )
