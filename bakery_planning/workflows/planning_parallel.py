"""
Parallel per-product forecast computation.

Each product's forecast depends only on its own history, the shared event
set and the shared configuration, so the batch is embarrassingly parallel.

Architecture
------------
* Top-level (module-scope) functions only, required for pickle support when
  using ProcessPoolExecutor with the "spawn" start method.
* **Primitive serialization**: SalesRecord / LossRecord dataclasses are
  converted to (ordinal_day, qty) tuples before being pickled and rebuilt in
  the worker. Tuples of primitives pickle much faster than typed dataclasses.
* Results come back in input order, whatever order chunks complete in.
* A failed chunk never fails the batch: its products get the default
  suggestion and the error is logged.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import replace
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence

from ..analytics.planning_settings import PlanningConfig
from ..domain.contracts import ForecastResult
from ..domain.models import CalendarEvent, LossRecord, ProductHistory, SalesRecord, TargetWeek
from ..domain.production_builder import compose_forecast, fallback_forecast

logger = logging.getLogger(__name__)


# ── Primitive serialization helpers ──────────────────────────────────────────

def _history_to_primitive(history: ProductHistory) -> dict:
    """ProductHistory → dict whose records are (ordinal, qty) tuples."""
    return {
        "history": replace(history, sales=(), losses=()),
        "sales": [(r.date.toordinal(), r.qty) for r in history.sales],
        "losses": [(r.date.toordinal(), r.qty) for r in history.losses],
    }


def _history_from_primitive(item: dict) -> ProductHistory:
    shell: ProductHistory = item["history"]
    pid = shell.product.product_id
    return replace(
        shell,
        sales=tuple(SalesRecord(pid, date.fromordinal(d), q) for d, q in item["sales"]),
        losses=tuple(LossRecord(pid, date.fromordinal(d), q) for d, q in item["losses"]),
    )


# ── Single product ────────────────────────────────────────────────────────────

def forecast_product(
    history: ProductHistory,
    events: Sequence[CalendarEvent],
    config: PlanningConfig,
    target_week: TargetWeek,
) -> ForecastResult:
    """
    Forecast one product; any failure degrades to the default suggestion.
    """
    try:
        return compose_forecast(history, events, config, target_week)
    except Exception as exc:
        # Never crash the batch on one bad product
        logger.warning("Forecast failed for product %s: %s", history.product.product_id, exc)
        return fallback_forecast(
            history.product, config, reason=str(exc), skipped_rows=history.skipped_rows,
        )


# ── Worker (may run in a spawned subprocess) ─────────────────────────────────

def _forecast_chunk_worker(chunk_args: dict) -> List[tuple]:
    """
    Compute forecasts for one chunk of products.

    ``chunk_args`` keys
    -------------------
    config : PlanningConfig
    target_week : TargetWeek
    events : tuple[CalendarEvent]
    items : list[tuple[int, dict]]
        (input index, primitive-serialized history)

    Returns
    -------
    list[(index, ForecastResult)]
    """
    config: PlanningConfig = chunk_args["config"]
    target_week: TargetWeek = chunk_args["target_week"]
    events = chunk_args["events"]

    out = []
    for index, item in chunk_args["items"]:
        history = _history_from_primitive(item)
        out.append((index, forecast_product(history, events, config, target_week)))
    return out


# ── Orchestrator ─────────────────────────────────────────────────────────────

def run_forecasts_parallel(
    histories: Sequence[ProductHistory],
    events: Sequence[CalendarEvent],
    config: PlanningConfig,
    target_week: TargetWeek,
    n_workers: int,
    use_processes: bool = True,
    on_progress: Optional[Callable[[int], None]] = None,
) -> List[ForecastResult]:
    """
    Run all product forecasts across a worker pool.

    Parameters
    ----------
    histories : sequence of ProductHistory
    events : shared calendar events (immutable snapshot)
    config : resolved PlanningConfig
    target_week : TargetWeek
    n_workers : int
        Number of workers; 1 runs inline without a pool.
    use_processes : bool
        ProcessPoolExecutor when True, ThreadPoolExecutor otherwise.
    on_progress : callable(n_done: int) | None
        Called after each chunk with the cumulative number of products done.

    Returns
    -------
    list[ForecastResult] in the same order as ``histories``.
    """
    n = len(histories)
    if n == 0:
        return []

    events = tuple(events)

    if n_workers <= 1:
        results = []
        for i, history in enumerate(histories, 1):
            results.append(forecast_product(history, events, config, target_week))
            if on_progress:
                on_progress(i)
        return results

    indexed = [(i, _history_to_primitive(h)) for i, h in enumerate(histories)]
    chunk_size = max(1, math.ceil(n / n_workers))
    chunks = [indexed[i : i + chunk_size] for i in range(0, n, chunk_size)]

    by_index: Dict[int, ForecastResult] = {}
    done_count = 0
    pool_cls = ProcessPoolExecutor if use_processes else ThreadPoolExecutor

    with pool_cls(max_workers=n_workers) as executor:
        future_map = {
            executor.submit(
                _forecast_chunk_worker,
                {
                    "config": config,
                    "target_week": target_week,
                    "events": events,
                    "items": chunk,
                },
            ): chunk
            for chunk in chunks
        }

        for future in as_completed(future_map):
            chunk = future_map[future]
            try:
                for index, result in future.result():
                    by_index[index] = result
            except Exception as exc:
                # Chunk failed: default suggestions so the batch can continue
                logger.error("Forecast chunk failed: %s", exc)
                for index, _ in chunk:
                    history = histories[index]
                    by_index[index] = fallback_forecast(
                        history.product, config, reason=str(exc), skipped_rows=history.skipped_rows,
                    )

            done_count += len(chunk)
            if on_progress:
                on_progress(done_count)

    return [by_index[i] for i in range(n)]
