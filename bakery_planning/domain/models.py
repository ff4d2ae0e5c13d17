"""
Domain models for the bakery production planner.

Pure data classes + value objects. No I/O, no side effects.
Deterministic and fully testable.
"""
import math
from dataclasses import dataclass, field
from datetime import date as Date, timedelta
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from ..config import ALL_SECTORS_SENTINELS


class Posture(Enum):
    """Risk posture controlling safety buffer size and trend reaction."""
    CONSERVATIVE = "conservador"
    BALANCED = "equilibrado"
    AGGRESSIVE = "agressivo"


class ForecastStrategy(Enum):
    """Demand estimation strategy."""
    SIMPLE = "simple"      # recency WMA + k·σ buffer
    BLENDED = "blended"    # recency / year-ago / 12-month blend + trend + flat buffer %


class ConfidenceLevel(Enum):
    """Advisory reliability of a forecast."""
    NO_DATA = "no data"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Trend(Enum):
    """Display label for a sales/loss trend."""
    GROWING = "growing"
    STABLE = "stable"
    DECREASING = "decreasing"


def _check_quantity(qty: float, what: str) -> None:
    if isinstance(qty, bool) or not isinstance(qty, (int, float)):
        raise ValueError(f"{what} must be a number")
    if not math.isfinite(qty):
        raise ValueError(f"{what} must be finite")
    if qty < 0:
        raise ValueError(f"{what} cannot be negative")


@dataclass(frozen=True)
class Product:
    """Catalog product - immutable, read-only to the engine."""
    product_id: str
    name: str
    sector: str
    unit: str = "un"
    active: bool = True
    production_days: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.product_id or not str(self.product_id).strip():
            raise ValueError("Product id cannot be empty")
        if not self.name or not self.name.strip():
            raise ValueError("Product name cannot be empty")


@dataclass(frozen=True)
class SalesRecord:
    """Daily sales fact."""
    product_id: str
    date: Date
    qty: float

    def __post_init__(self):
        if not self.product_id:
            raise ValueError("Sales record needs a product id")
        if not isinstance(self.date, Date):
            raise ValueError("Sales record date must be a date")
        _check_quantity(self.qty, "Sales quantity")


@dataclass(frozen=True)
class LossRecord:
    """Daily loss (spoilage / waste) fact."""
    product_id: str
    date: Date
    qty: float

    def __post_init__(self):
        if not self.product_id:
            raise ValueError("Loss record needs a product id")
        if not isinstance(self.date, Date):
            raise ValueError("Loss record date must be a date")
        _check_quantity(self.qty, "Loss quantity")


@dataclass(frozen=True)
class CalendarEvent:
    """
    Promotional / holiday calendar entry.

    impact_percentage is signed (+20 = +20% demand); 0 means informational.
    An empty sectors set matches nothing; a set holding a sentinel
    ("Todos", "all", ...) matches every sector.
    """
    name: str
    date: Date
    impact_percentage: float = 0.0
    sectors: FrozenSet[str] = frozenset()
    type: str = ""
    priority: str = ""
    notes: str = ""

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Event name cannot be empty")
        if not isinstance(self.date, Date):
            raise ValueError("Event date must be a date")
        if isinstance(self.impact_percentage, bool) or not isinstance(self.impact_percentage, (int, float)):
            raise ValueError("Event impact must be a number")
        if not math.isfinite(self.impact_percentage):
            raise ValueError("Event impact must be finite")

    @property
    def all_sectors(self) -> bool:
        return bool(self.sectors & ALL_SECTORS_SENTINELS)

    @property
    def has_impact(self) -> bool:
        return self.impact_percentage != 0


@dataclass(frozen=True)
class TargetWeek:
    """Week being planned (both bounds inclusive)."""
    start: Date
    end: Date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError("Target week end cannot be before its start")

    def contains(self, check_date: Date) -> bool:
        return self.start <= check_date <= self.end


@dataclass(frozen=True)
class WeeklyBucket:
    """One week of aggregated history for one product (oldest-first index)."""
    start: Date
    sales: float = 0.0
    losses: float = 0.0
    damping: float = 1.0

    def __post_init__(self):
        if not 0 < self.damping <= 1.0:
            raise ValueError(f"damping must be in (0, 1], got {self.damping}")

    @property
    def end(self) -> Date:
        return self.start + timedelta(days=6)

    @property
    def has_data(self) -> bool:
        return (self.sales + self.losses) > 0

    @property
    def damped_sales(self) -> float:
        return self.sales * self.damping

    def contains(self, check_date: Date) -> bool:
        return self.start <= check_date <= self.end


@dataclass(frozen=True)
class ReferenceAggregates:
    """
    Long-run reference totals for one product (blended strategy only).

    year_ago_* cover the 3-week window centred on the target week one year
    earlier; trailing_12m_sales covers the 12 months before the target start.
    """
    year_ago_sales: float = 0.0
    year_ago_losses: float = 0.0
    trailing_12m_sales: float = 0.0

    def __post_init__(self):
        _check_quantity(self.year_ago_sales, "Year-ago sales")
        _check_quantity(self.year_ago_losses, "Year-ago losses")
        _check_quantity(self.trailing_12m_sales, "Trailing 12-month sales")

    @property
    def has_year_ago(self) -> bool:
        return self.year_ago_sales > 0

    @property
    def has_trailing_12m(self) -> bool:
        return self.trailing_12m_sales > 0


@dataclass(frozen=True)
class ProductHistory:
    """Immutable per-product input snapshot handed to the engine."""
    product: Product
    sales: Tuple[SalesRecord, ...] = ()
    losses: Tuple[LossRecord, ...] = ()
    reference: ReferenceAggregates = field(default_factory=ReferenceAggregates)
    skipped_rows: int = 0
