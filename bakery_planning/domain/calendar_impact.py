"""
Calendar-aware demand weighting for historical weeks and the target week.

Methodology:
1. Match CalendarEvent to a product's sector (explicit sector or "all sectors")
2. Historical damping, per bucket:
   - candidates = max(0.2, 1 - |impact%|/100 * 1.2) for matching events
     with nonzero impact dated inside the bucket
   - damping = min(candidates), 1.0 when none
   An exceptional week keeps some weight (floor 0.2) but cannot dominate
   the baseline average.
3. Target-week multiplier: Π(1 + impact_i/100) over matching events with
   nonzero impact inside the target week
4. Zero-impact events are returned as informational annotations only

Design Invariants:
- Deterministic: events are folded in canonical (date, name, impact) order,
  so the multiplier is bit-identical for any input order
- Robust: malformed event rows are skipped with a debug log, never fatal
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, FrozenSet, Iterable, List, Mapping, Sequence, Tuple

from ..config import DAMPING_FLOOR, DAMPING_SLOPE
from .models import CalendarEvent, TargetWeek, WeeklyBucket
from .validation import parse_day


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetWeekImpact:
    """Calendar effect on the week being planned for one sector."""
    multiplier: float
    impact_events: Tuple[CalendarEvent, ...]
    info_events: Tuple[CalendarEvent, ...]

    @property
    def event_names(self) -> List[str]:
        return [e.name for e in self.impact_events]


def _parse_sectors(raw: Any) -> FrozenSet[str]:
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        return frozenset({raw}) if raw.strip() else frozenset()
    return frozenset(str(s) for s in raw)


def coerce_events(rows: Iterable[Any]) -> Tuple[List[CalendarEvent], int]:
    """
    Turn raw event rows into CalendarEvent objects.

    Returns:
        (events, n_skipped)
    """
    events: List[CalendarEvent] = []
    skipped = 0
    for row in rows:
        if isinstance(row, CalendarEvent):
            events.append(row)
            continue
        try:
            if not isinstance(row, Mapping):
                raise TypeError(f"unsupported event row type {type(row).__name__}")
            impact_raw = row.get("impact_percentage")
            events.append(CalendarEvent(
                name=str(row["name"]),
                date=parse_day(row.get("date")),
                impact_percentage=float(impact_raw) if impact_raw not in (None, "") else 0.0,
                sectors=_parse_sectors(row.get("sectors")),
                type=str(row.get("type") or ""),
                priority=str(row.get("priority") or ""),
                notes=str(row.get("notes") or ""),
            ))
        except (ValueError, TypeError, KeyError) as e:
            logger.debug("Skipping malformed calendar event %r: %s", row, e)
            skipped += 1
    return events, skipped


def event_affects_sector(event: CalendarEvent, sector: str) -> bool:
    """True if the event targets `sector` or every sector."""
    return event.all_sectors or sector in event.sectors


def _canonical(events: Iterable[CalendarEvent]) -> List[CalendarEvent]:
    return sorted(events, key=lambda e: (e.date, e.name, e.impact_percentage))


def damping_candidate(impact_percentage: float) -> float:
    """Weight a historical week keeps under one event of this impact."""
    return max(DAMPING_FLOOR, 1.0 - abs(impact_percentage) / 100.0 * DAMPING_SLOPE)


def historical_damping(bucket: WeeklyBucket, events: Sequence[CalendarEvent], sector: str) -> float:
    """
    Damping factor for one historical bucket (most extreme event wins).

    Returns:
        float in [0.2, 1.0]
    """
    damping = 1.0
    for event in events:
        if not event.has_impact or not bucket.contains(event.date):
            continue
        if not event_affects_sector(event, sector):
            continue
        damping = min(damping, damping_candidate(event.impact_percentage))
    return damping


def apply_calendar_damping(
    buckets: Sequence[WeeklyBucket],
    events: Sequence[CalendarEvent],
    sector: str,
) -> List[WeeklyBucket]:
    """Return copies of `buckets` carrying their calendar damping factor."""
    damped = []
    for bucket in buckets:
        factor = historical_damping(bucket, events, sector)
        damped.append(replace(bucket, damping=factor) if factor != bucket.damping else bucket)
    return damped


def target_week_multiplier(events: Iterable[CalendarEvent]) -> float:
    """Multiplicative combination Π(1 + impact/100); zero-impact events are neutral."""
    multiplier = 1.0
    for event in _canonical(events):
        multiplier *= 1.0 + event.impact_percentage / 100.0
    return multiplier


def split_target_week_events(
    events: Sequence[CalendarEvent],
    target_week: TargetWeek,
    sector: str,
) -> TargetWeekImpact:
    """
    Collect events inside the target week that match `sector`.

    Returns:
        TargetWeekImpact with the multiplier from impact events and the
        zero-impact events kept apart as annotations
    """
    matching = [
        e for e in _canonical(events)
        if target_week.contains(e.date) and event_affects_sector(e, sector)
    ]
    impact = tuple(e for e in matching if e.has_impact)
    info = tuple(e for e in matching if not e.has_impact)
    return TargetWeekImpact(
        multiplier=target_week_multiplier(impact),
        impact_events=impact,
        info_events=info,
    )
