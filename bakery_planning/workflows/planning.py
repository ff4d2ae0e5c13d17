"""
Weekly planning workflow: one request → PlanningResponse for every active product.
"""
import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..analytics.planning_settings import PlanningConfig, resolve_planning_config
from ..domain.calendar_impact import coerce_events
from ..domain.contracts import PlanningResponse
from ..domain.history import aggregate_reference_periods, coerce_movements, history_window
from ..domain.models import (
    ForecastStrategy,
    LossRecord,
    Product,
    ProductHistory,
    ReferenceAggregates,
    SalesRecord,
    TargetWeek,
)
from ..domain.validation import parse_production_days, parse_target_week
from .planning_parallel import run_forecasts_parallel


logger = logging.getLogger(__name__)


_INACTIVE_STATUSES = {"inativo", "inactive", "0", "false"}


def _product_from_row(row: Mapping[str, Any]) -> Product:
    raw_id = row.get("product_id", row.get("id"))
    if raw_id is None:
        raise KeyError("product_id")

    active = row.get("active", row.get("status"))
    if active is None:
        active = True
    elif isinstance(active, str):
        active = active.strip().lower() not in _INACTIVE_STATUSES

    return Product(
        product_id=str(raw_id),
        name=str(row.get("name", row.get("nome")) or ""),
        sector=str(row.get("sector", row.get("setor")) or ""),
        unit=str(row.get("unit", row.get("unidade")) or "un"),
        active=bool(active),
        production_days=parse_production_days(row.get("production_days", row.get("dias_producao"))),
    )


def coerce_products(rows: Iterable[Any]) -> Tuple[List[Product], int]:
    """
    Turn catalog rows into Product objects.

    Returns:
        (products, n_skipped)
    """
    products: List[Product] = []
    skipped = 0
    for row in rows:
        if isinstance(row, Product):
            products.append(row)
            continue
        try:
            if not isinstance(row, Mapping):
                raise TypeError(f"unsupported product row type {type(row).__name__}")
            products.append(_product_from_row(row))
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Skipping malformed product row %r: %s", row, e)
            skipped += 1
    return products, skipped


def _trim(records, start: date, end: date) -> tuple:
    return tuple(r for r in records if start <= r.date <= end)


class PlanningWorkflow:
    """Weekly production planning over a product catalog snapshot."""

    def __init__(
        self,
        config: Optional[PlanningConfig] = None,
        settings: Optional[Dict[str, Any]] = None,
        n_workers: int = 1,
        use_processes: bool = True,
    ):
        """
        Initialize workflow.

        Args:
            config: Already resolved configuration (takes precedence)
            settings: Raw settings dict, resolved when config is None
            n_workers: Parallel workers for per-product forecasts (1 = inline)
            use_processes: Process pool when True, thread pool otherwise
        """
        self.config = config if config is not None else resolve_planning_config(settings)
        self.n_workers = max(1, int(n_workers))
        self.use_processes = use_processes

    def build_histories(
        self,
        products: Iterable[Product],
        sales_rows: Iterable[Any],
        loss_rows: Iterable[Any],
        target_week: TargetWeek,
        reference: Optional[Mapping[str, ReferenceAggregates]] = None,
    ) -> Tuple[List[ProductHistory], int]:
        """
        Group raw movements into one immutable snapshot per active product.

        Only active products are kept, ordered by (sector, name). Records are
        trimmed to the span the engine reads. With the blended strategy and no
        supplied reference aggregates, they are computed from the rows, which
        must then reach back twelve months.

        Returns:
            (histories, total_skipped_rows)
        """
        sales = coerce_movements(sales_rows, SalesRecord)
        losses = coerce_movements(loss_rows, LossRecord)
        blended = self.config.strategy is ForecastStrategy.BLENDED

        window_start, _ = history_window(target_week.start, self.config.lookback_weeks)
        active = sorted((p for p in products if p.active), key=lambda p: (p.sector, p.name))

        histories = []
        for product in active:
            pid = product.product_id
            product_sales = sales.by_product.get(pid, ())
            product_losses = losses.by_product.get(pid, ())

            if not blended:
                ref = ReferenceAggregates()
            elif reference is not None and pid in reference:
                ref = reference[pid]
            else:
                ref = aggregate_reference_periods(product_sales, product_losses, target_week.start)

            histories.append(ProductHistory(
                product=product,
                sales=_trim(product_sales, window_start, target_week.end),
                losses=_trim(product_losses, window_start, target_week.end),
                reference=ref,
                skipped_rows=sales.skipped.get(pid, 0) + losses.skipped.get(pid, 0),
            ))

        return histories, sales.total_skipped + losses.total_skipped

    def run(
        self,
        products: Iterable[Any],
        sales_rows: Iterable[Any],
        loss_rows: Iterable[Any],
        events: Iterable[Any],
        start: Any,
        end: Any,
        reference: Optional[Mapping[str, ReferenceAggregates]] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> PlanningResponse:
        """
        Plan production for the target week [start, end].

        Args:
            products: Product objects or catalog rows
            sales_rows: SalesRecord objects or rows (product_id, date, qty)
            loss_rows: LossRecord objects or rows (product_id, date, qty)
            events: CalendarEvent objects or rows
            start: Target week start (date or ISO string)
            end: Target week end (date or ISO string)
            reference: Optional precomputed year-ago / 12-month aggregates per product id
            on_progress: Optional callback with the number of products done

        Returns:
            PlanningResponse

        Raises:
            PlanningInputError: target week bounds missing, unparseable or inverted
        """
        target_week = parse_target_week(start, end)

        catalog, skipped_products = coerce_products(products)
        calendar_events, skipped_events = coerce_events(events)
        histories, skipped_rows = self.build_histories(
            catalog, sales_rows, loss_rows, target_week, reference,
        )

        logger.info(
            "Planning %d products for %s..%s (%s, %d events)",
            len(histories), target_week.start, target_week.end,
            self.config.strategy.value, len(calendar_events),
        )

        results = run_forecasts_parallel(
            histories,
            calendar_events,
            self.config,
            target_week,
            n_workers=self.n_workers,
            use_processes=self.use_processes,
            on_progress=on_progress,
        )

        failed = [r.product_id for r in results if r.forecast_failed]
        if failed:
            logger.warning("Default suggestion used for %d failed products: %s", len(failed), failed)

        return PlanningResponse(
            products=tuple(results),
            period_start=target_week.start,
            period_end=target_week.end,
            config_used=self.config.to_dict(),
            skipped_rows=skipped_rows + skipped_products,
            skipped_events=skipped_events,
        )
