"""
Forecast → Consumer contract: typed dataclasses forming the single interface
between the planning engine and whatever displays or stores its output.

Pipeline (single flow, per product):
    build_weekly_buckets()
        → apply_calendar_damping() / split_target_week_events()
            → estimate_demand() / safety_buffer() / estimate_loss_rate()
                → compose_forecast()
                    → ForecastResult  (full audit trail)

Objects
-------
ForecastBreakdown  – every intermediate quantity of one product's suggestion
ForecastResult     – complete record for one product
PlanningResponse   – all products + period + resolved configuration echo

Raw floats are kept on the objects; rounding happens only in to_dict().
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from .models import CalendarEvent, ConfidenceLevel, Trend


def _event_dict(event: CalendarEvent) -> Dict[str, Any]:
    return {
        "name": event.name,
        "date": event.date.isoformat(),
        "type": event.type,
        "impact_pct": event.impact_percentage,
        "priority": event.priority,
        "notes": event.notes,
    }


# ---------------------------------------------------------------------------
# ForecastBreakdown
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ForecastBreakdown:
    """
    Audit record of the arithmetic behind one suggestion.

    A reviewer can recompute suggested_production from these fields:
        gross_demand = predicted_demand + buffer_units
        production   = max(0, ceil(gross_demand / (1 - loss_rate_used)))
    """

    strategy: str
    weeks_with_data: int
    used_default: bool = False

    # ---- Demand ----
    recency_average: float = 0.0
    year_ago_average: float = 0.0
    baseline_12m_average: float = 0.0
    blend_weights: Dict[str, float] = field(default_factory=dict)
    blended_demand: float = 0.0
    growth_rate: float = 0.0
    growth_applied: float = 0.0
    calendar_multiplier: float = 1.0
    predicted_demand: float = 0.0

    # ---- Buffer ----
    sigma: float = 0.0
    k_factor: float = 0.0
    service_level: float = 0.0
    buffer_method: str = ""
    buffer_pct: float = 0.0
    buffer_units: float = 0.0
    gross_demand: float = 0.0

    # ---- Loss ----
    loss_rate_raw: float = 0.0
    loss_rate_used: float = 0.0
    loss_rate_source: str = "none"
    year_ago_loss_rate: Optional[float] = None

    # ---- Production ----
    production_raw: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "weeks_with_data": self.weeks_with_data,
            "used_default": self.used_default,
            "recency_average": round(self.recency_average, 2),
            "year_ago_average": round(self.year_ago_average, 2),
            "baseline_12m_average": round(self.baseline_12m_average, 2),
            "blend_weights": {k: round(v * 100) for k, v in self.blend_weights.items()},
            "blended_demand": round(self.blended_demand, 2),
            "growth_rate_pct": round(self.growth_rate * 100, 1),
            "growth_applied_pct": round(self.growth_applied * 100, 1),
            "calendar_multiplier": round(self.calendar_multiplier, 3),
            "predicted_demand": round(self.predicted_demand, 2),
            "sigma": round(self.sigma, 2),
            "k_factor": self.k_factor,
            "service_level": f"{self.service_level:.0%}",
            "buffer_method": self.buffer_method,
            "buffer_pct": round(self.buffer_pct * 100, 2),
            "buffer_units": round(self.buffer_units, 2),
            "gross_demand": round(self.gross_demand, 2),
            "loss_rate_pct": round(self.loss_rate_raw * 100, 1),
            "loss_rate_used_pct": round(self.loss_rate_used * 100, 1),
            "loss_rate_source": self.loss_rate_source,
            "year_ago_loss_rate_pct": (
                round(self.year_ago_loss_rate * 100, 1) if self.year_ago_loss_rate is not None else None
            ),
            "production_raw": round(self.production_raw, 2),
        }


# ---------------------------------------------------------------------------
# ForecastResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ForecastResult:
    """Full forecast record for a single active product."""

    product_id: str
    product_name: str
    sector: str
    unit: str
    production_days: Tuple[str, ...]

    suggested_production: int
    confidence: ConfidenceLevel
    confidence_label: str
    suggestion: str
    breakdown: ForecastBreakdown

    # ---- Display averages (raw, undamped) ----
    avg_sales: float = 0.0
    avg_losses: float = 0.0
    avg_loss_rate: float = 0.0

    # ---- Target week actuals (display only) ----
    current_sales: float = 0.0
    current_losses: float = 0.0

    # ---- Trends ----
    sales_trend: Trend = Trend.STABLE
    losses_trend: Trend = Trend.STABLE
    sales_growth_rate: float = 0.0

    # ---- Calendar ----
    calendar_multiplier: float = 1.0
    target_events: Tuple[CalendarEvent, ...] = ()
    info_events: Tuple[CalendarEvent, ...] = ()

    weeks_with_data: int = 0
    has_year_ago: bool = False
    skipped_rows: int = 0
    forecast_failed: bool = False

    @property
    def current_loss_rate(self) -> float:
        movement = self.current_sales + self.current_losses
        return self.current_losses / movement if movement > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Flat-ish dict representation, safe for JSON export."""
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sector": self.sector,
            "unit": self.unit,
            "production_days": list(self.production_days),
            "avg_sales": round(self.avg_sales, 2),
            "avg_losses": round(self.avg_losses, 2),
            "avg_loss_rate": round(self.avg_loss_rate * 100, 1),
            "current_sales": self.current_sales,
            "current_losses": self.current_losses,
            "current_loss_rate": round(self.current_loss_rate * 100, 1),
            "sales_trend": self.sales_trend.value,
            "losses_trend": self.losses_trend.value,
            "sales_growth_rate": round(self.sales_growth_rate * 100, 1),
            "confidence": self.confidence.value,
            "confidence_label": self.confidence_label,
            "weeks_with_data": self.weeks_with_data,
            "has_year_ago": self.has_year_ago,
            "week_events": [_event_dict(e) for e in self.target_events],
            "week_events_info": [_event_dict(e) for e in self.info_events],
            "calendar_multiplier": round(self.calendar_multiplier, 3),
            "calc_details": self.breakdown.to_dict(),
            "suggested_production": self.suggested_production,
            "suggestion": self.suggestion,
            "skipped_rows": self.skipped_rows,
            "forecast_failed": self.forecast_failed,
        }


# ---------------------------------------------------------------------------
# PlanningResponse
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanningResponse:
    """Response payload for one planning request."""

    products: Tuple[ForecastResult, ...]
    period_start: date
    period_end: date
    config_used: Dict[str, Any]
    skipped_rows: int = 0
    skipped_events: int = 0

    @property
    def failed_products(self) -> List[str]:
        return [r.product_id for r in self.products if r.forecast_failed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products": [r.to_dict() for r in self.products],
            "period": {
                "start": self.period_start.isoformat(),
                "end": self.period_end.isoformat(),
            },
            "config_used": dict(self.config_used),
            "skipped_rows": self.skipped_rows,
            "skipped_events": self.skipped_events,
            "failed_products": self.failed_products,
        }

    def to_json(self) -> str:
        """JSON string representation."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)
