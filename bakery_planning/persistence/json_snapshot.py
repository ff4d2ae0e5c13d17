"""
JSON snapshot loader.

A snapshot is one UTF-8 JSON document holding everything a planning request
reads:

    {
        "products":  [{"id": ..., "name": ..., "sector": ..., ...}],
        "sales":     [{"product_id": ..., "date": "YYYY-MM-DD", "qty": ...}],
        "losses":    [{"product_id": ..., "date": "YYYY-MM-DD", "qty": ...}],
        "events":    [{"name": ..., "date": ..., "impact_percentage": ..., "sectors": [...]}],
        "settings":  {"planning": {"lookback_weeks": {"value": 8}, ...}},
        "reference": {"<product_id>": {"year_ago_sales": ..., ...}}
    }

"settings" may instead be a list of store rows ({"chave": ..., "valor": ...}).
Missing sections default to empty; a missing settings section means defaults.
Rows are not validated here: the workflow skips and counts malformed rows.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..analytics.planning_settings import settings_from_store_rows
from ..domain.models import ReferenceAggregates


logger = logging.getLogger(__name__)

_ROW_SECTIONS = ("products", "sales", "losses", "events")


@dataclass
class PlanningSnapshot:
    """Raw inputs of one planning request, as read from disk."""
    products: List[Any] = field(default_factory=list)
    sales: List[Any] = field(default_factory=list)
    losses: List[Any] = field(default_factory=list)
    events: List[Any] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)
    reference: Optional[Dict[str, ReferenceAggregates]] = None


def _reference_from_json(raw: Any) -> Optional[Dict[str, ReferenceAggregates]]:
    if not isinstance(raw, dict):
        return None
    reference = {}
    for product_id, values in raw.items():
        try:
            reference[str(product_id)] = ReferenceAggregates(
                year_ago_sales=float(values.get("year_ago_sales", 0.0)),
                year_ago_losses=float(values.get("year_ago_losses", 0.0)),
                trailing_12m_sales=float(values.get("trailing_12m_sales", 0.0)),
            )
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Ignoring reference aggregates for %s: %s", product_id, e)
    return reference


def snapshot_from_dict(data: Dict[str, Any]) -> PlanningSnapshot:
    """Build a PlanningSnapshot from an already-parsed JSON document."""
    sections = {}
    for name in _ROW_SECTIONS:
        rows = data.get(name) or []
        if not isinstance(rows, list):
            logger.warning("Snapshot section '%s' is not a list, ignoring it", name)
            rows = []
        sections[name] = rows

    raw_settings = data.get("settings")
    if isinstance(raw_settings, list):
        settings = settings_from_store_rows(raw_settings)
    elif isinstance(raw_settings, dict):
        settings = raw_settings
    else:
        if raw_settings is not None:
            logger.warning("Snapshot settings section unreadable, using defaults")
        settings = {}

    return PlanningSnapshot(
        settings=settings,
        reference=_reference_from_json(data.get("reference")),
        **sections,
    )


def load_snapshot(path: Union[str, Path]) -> PlanningSnapshot:
    """
    Load a planning snapshot from a JSON file.

    Args:
        path: Snapshot file (UTF-8 JSON object)

    Returns:
        PlanningSnapshot

    Raises:
        FileNotFoundError: path does not exist
        ValueError: file is not a JSON object
    """
    snapshot_path = Path(path)
    with open(snapshot_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid snapshot JSON in {snapshot_path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Snapshot {snapshot_path} must contain a JSON object")

    snapshot = snapshot_from_dict(data)
    logger.info(
        "Loaded snapshot %s: %d products, %d sales, %d losses, %d events",
        snapshot_path, len(snapshot.products), len(snapshot.sales),
        len(snapshot.losses), len(snapshot.events),
    )
    return snapshot
