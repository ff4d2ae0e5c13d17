"""
Centralized validation rules for planning inputs.

Provides parsing/validation functions for dates, quantities and the target
week bounds. Row-level helpers raise ValueError so callers can skip a single
malformed row; the target-week helper raises PlanningInputError, which is a
caller error and aborts the request before any computation.
"""
import json
import math
from datetime import date, datetime
from typing import Any, Optional, Tuple

from .models import TargetWeek


class PlanningInputError(ValueError):
    """Raised when the request itself is unusable (e.g. missing week bounds)."""
    pass


def parse_day(value: Any) -> date:
    """
    Parse a day-granularity date.

    Accepts date, datetime (time part dropped) or ISO strings, including
    timestamps such as "2026-02-03T00:00:00.000Z".

    Raises:
        ValueError: value is empty or not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date: {value!r}")
    return date.fromisoformat(value.strip().split("T")[0][:10])


def parse_quantity(value: Any) -> float:
    """
    Parse a non-negative finite quantity (numbers or numeric strings).

    Raises:
        ValueError: non-numeric, NaN/inf or negative
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Invalid quantity: {value!r}")
    qty = float(value)
    if not math.isfinite(qty):
        raise ValueError(f"Quantity must be finite: {value!r}")
    if qty < 0:
        raise ValueError(f"Quantity cannot be negative: {value!r}")
    return qty


def parse_production_days(raw: Any) -> Tuple[str, ...]:
    """
    Normalize a product's production days.

    The catalog stores them as a list, a JSON-encoded list or a mapping;
    anything unreadable becomes an empty tuple.
    """
    if not raw:
        return ()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return ()
    if isinstance(raw, dict):
        raw = list(raw.values())
    if isinstance(raw, (list, tuple)):
        return tuple(str(d) for d in raw)
    return ()


def validate_date_range(start_date: Optional[date], end_date: Optional[date]) -> Tuple[bool, str]:
    """
    Validate date range.

    Args:
        start_date: Start date
        end_date: End date

    Returns:
        (is_valid, error_message)
    """
    if start_date is None or end_date is None:
        return False, "Missing startDate or endDate"

    if start_date > end_date:
        return False, "startDate must be on or before endDate"

    return True, ""


def parse_target_week(start: Any, end: Any) -> TargetWeek:
    """
    Build the TargetWeek from raw request bounds.

    Raises:
        PlanningInputError: a bound is missing, unparseable or inverted
    """
    if start in (None, "") or end in (None, ""):
        raise PlanningInputError("Missing startDate or endDate")

    try:
        start_day = parse_day(start)
        end_day = parse_day(end)
    except ValueError as e:
        raise PlanningInputError(f"Unparseable target week bounds: {e}") from e

    is_valid, error = validate_date_range(start_day, end_day)
    if not is_valid:
        raise PlanningInputError(error)

    return TargetWeek(start=start_day, end=end_day)
