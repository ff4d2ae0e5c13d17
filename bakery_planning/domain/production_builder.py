"""
Production Builder: the SINGLE point that turns one product's history into
a ForecastResult.

Public API
----------
compose_forecast(history, events, config, target_week) → ForecastResult
fallback_forecast(product, config, reason)            → ForecastResult
production_quantity(gross_demand, loss_rate)          → (raw, units)

Buffer order
------------
Every buffer (k·σ or flat percentage) is converted to absolute units and
added to predicted demand BEFORE the loss-rate inversion:

    gross_demand = predicted_demand + buffer_units
    production   = max(0, ceil(gross_demand / (1 - min(loss_rate, 0.90))))

For the flat percentage this equals demand / (1 - loss) × (1 + pct) up to
floating-point rounding.

The quotient is rounded to 6 decimals before ceil, so float noise such as
10 / (1 - 0.9) = 100.00000000000001 never adds a unit. The flip side: a real
shortfall under 0.000001 units (e.g. 100.0000004) rounds down to 100.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence, Tuple

import numpy as np

from ..analytics.planning_settings import PlanningConfig
from ..config import MIN_WEEKS_FOR_TREND
from ..forecast import DemandEstimate, estimate_demand, growth_rate, trend_label, valid_buckets
from ..uncertainty import BufferEstimate, safety_buffer
from .calendar_impact import TargetWeekImpact, apply_calendar_damping, split_target_week_events
from .confidence import CONFIDENCE_LABELS, classify_confidence
from .contracts import ForecastBreakdown, ForecastResult
from .history import build_weekly_buckets, current_week_totals
from .loss_rate import LossRateEstimate, clamp_loss_rate, estimate_loss_rate
from .models import CalendarEvent, ConfidenceLevel, ForecastStrategy, Product, ProductHistory, TargetWeek


logger = logging.getLogger(__name__)


def production_quantity(gross_demand: float, loss_rate: float) -> Tuple[float, int]:
    """
    Invert the loss rate: units to bake so that `gross_demand` survives.

    Returns:
        (raw_quantity, rounded_up_units); units are never negative
    """
    rate = clamp_loss_rate(loss_rate)
    raw = max(0.0, gross_demand) / (1.0 - rate)
    # 10 / (1 - 0.9) is 100.00000000000001 in binary floating point
    return raw, max(0, math.ceil(round(raw, 6)))


def _fmt_signed_pct(multiplier: float) -> str:
    pct = (multiplier - 1.0) * 100.0
    sign = "+" if multiplier >= 1 else ""
    return f"{sign}{pct:.0f}%"


def build_explanation(
    product: Product,
    config: PlanningConfig,
    demand: DemandEstimate,
    buffer: BufferEstimate,
    loss: LossRateEstimate,
    impact: TargetWeekImpact,
) -> str:
    """Human-readable justification of one suggestion."""
    if demand.used_default:
        return f"No history. Using default suggestion of {config.default_suggestion:g} {product.unit}."

    sigma = round(buffer.sigma, 1)
    if buffer.method == "k_sigma":
        parts = [
            f"WMA of {demand.weeks_with_data} wk",
            f"σ = {sigma:g} {product.unit}",
            f"Buffer = {buffer.k:g}×{sigma:g} = {round(buffer.buffer_units, 1):g}",
        ]
    else:
        parts = [
            demand.strategy_note.rstrip("."),
            f"{demand.weeks_with_data} wk of history",
            f"σ = {sigma:g} {product.unit}",
            f"Buffer: +{buffer.buffer_pct * 100:.0f}% = {round(buffer.buffer_units, 1):g}",
        ]
    parts.append(f"Loss: {loss.raw_rate * 100:.1f}%")
    text = " | ".join(parts) + "."

    if loss.clamped:
        text += f" Loss rate capped at {loss.rate * 100:.0f}%."
    if impact.impact_events:
        names = ", ".join(impact.event_names)
        text += f" Calendar: {_fmt_signed_pct(impact.multiplier)} ({names})."
    return text


def compose_forecast(
    history: ProductHistory,
    events: Sequence[CalendarEvent],
    config: PlanningConfig,
    target_week: TargetWeek,
) -> ForecastResult:
    """
    Run the full per-product pipeline.

    Args:
        history: Product snapshot (records may extend beyond the window;
                 only [start - N weeks, start) feeds the forecast)
        events: Calendar events covering history window and target week
        config: Resolved planning configuration
        target_week: Week being planned

    Returns:
        ForecastResult
    """
    product = history.product
    reference = history.reference if config.strategy is ForecastStrategy.BLENDED else None

    buckets = build_weekly_buckets(history.sales, history.losses, target_week.start, config.lookback_weeks)
    buckets = apply_calendar_damping(buckets, events, product.sector)
    impact = split_target_week_events(events, target_week, product.sector)

    demand = estimate_demand(buckets, config, impact.multiplier, reference)
    buffer = safety_buffer(buckets, config, demand.predicted_demand)
    loss = estimate_loss_rate(buckets, config.strategy, reference)

    if demand.used_default:
        gross = config.default_suggestion
        production_raw = config.default_suggestion
        suggested = max(0, math.ceil(config.default_suggestion))
        buffer_units = 0.0
    else:
        buffer_units = buffer.buffer_units
        gross = demand.predicted_demand + buffer_units
        production_raw, suggested = production_quantity(gross, loss.rate)
        if loss.clamped:
            logger.debug(
                "Product %s: loss rate %.3f capped at %.2f",
                product.product_id, loss.raw_rate, loss.rate,
            )

    has_year_ago = bool(reference and reference.has_year_ago)
    confidence = classify_confidence(demand.weeks_with_data, has_year_ago)

    valid = valid_buckets(buckets)
    sales_values = [b.sales for b in valid]
    loss_values = [b.losses for b in valid]
    current_sales, current_losses = current_week_totals(history.sales, history.losses, target_week)

    breakdown = ForecastBreakdown(
        strategy=config.strategy.value,
        weeks_with_data=demand.weeks_with_data,
        used_default=demand.used_default,
        recency_average=demand.recency_average,
        year_ago_average=demand.year_ago_average,
        baseline_12m_average=demand.baseline_12m_average,
        blend_weights=dict(demand.blend_weights),
        blended_demand=demand.blended_demand,
        growth_rate=demand.growth_rate,
        growth_applied=demand.growth_applied,
        calendar_multiplier=impact.multiplier,
        predicted_demand=demand.predicted_demand,
        sigma=buffer.sigma,
        k_factor=buffer.k,
        service_level=buffer.service_level,
        buffer_method=buffer.method,
        buffer_pct=buffer.buffer_pct,
        buffer_units=buffer_units,
        gross_demand=gross,
        loss_rate_raw=loss.raw_rate,
        loss_rate_used=loss.rate,
        loss_rate_source=loss.source,
        year_ago_loss_rate=loss.year_ago_rate,
        production_raw=production_raw,
    )

    return ForecastResult(
        product_id=product.product_id,
        product_name=product.name,
        sector=product.sector,
        unit=product.unit,
        production_days=product.production_days,
        suggested_production=suggested,
        confidence=confidence,
        confidence_label=CONFIDENCE_LABELS[confidence],
        suggestion=build_explanation(product, config, demand, buffer, loss, impact),
        breakdown=breakdown,
        avg_sales=float(np.mean(sales_values)) if sales_values else 0.0,
        avg_losses=float(np.mean(loss_values)) if loss_values else 0.0,
        avg_loss_rate=loss.raw_rate,
        current_sales=current_sales,
        current_losses=current_losses,
        sales_trend=trend_label(sales_values),
        losses_trend=trend_label(loss_values),
        sales_growth_rate=growth_rate(sales_values) if len(sales_values) >= MIN_WEEKS_FOR_TREND else 0.0,
        calendar_multiplier=impact.multiplier,
        target_events=impact.impact_events,
        info_events=impact.info_events,
        weeks_with_data=demand.weeks_with_data,
        has_year_ago=has_year_ago,
        skipped_rows=history.skipped_rows,
    )


def fallback_forecast(
    product: Product,
    config: PlanningConfig,
    reason: str = "",
    skipped_rows: int = 0,
) -> ForecastResult:
    """
    Default-suggestion result for a product whose forecast could not be built.

    Surfaces as "no data" so one broken product never fails the batch.
    """
    suggested = max(0, math.ceil(config.default_suggestion))
    text = f"Forecast unavailable. Using default suggestion of {config.default_suggestion:g} {product.unit}."
    if reason:
        text += f" ({reason})"
    return ForecastResult(
        product_id=product.product_id,
        product_name=product.name,
        sector=product.sector,
        unit=product.unit,
        production_days=product.production_days,
        suggested_production=suggested,
        confidence=ConfidenceLevel.NO_DATA,
        confidence_label=CONFIDENCE_LABELS[ConfidenceLevel.NO_DATA],
        suggestion=text,
        breakdown=ForecastBreakdown(
            strategy=config.strategy.value,
            weeks_with_data=0,
            used_default=True,
            predicted_demand=config.default_suggestion,
            gross_demand=config.default_suggestion,
            production_raw=config.default_suggestion,
        ),
        skipped_rows=skipped_rows,
        forecast_failed=True,
    )
