"""
Planning settings: posture profiles, validation and config resolution.

Resolution rules:
- Settings live in the "planning" section: {"planning": {key: {"value": v}}}
- Every key has a hard-coded default (see config.py); a missing section,
  missing key or unparseable value degrades to that default
- Values are clamped to their valid ranges
- The resolved PlanningConfig is frozen and built once per request
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ..config import (
    DEFAULT_BUFFER_PCT,
    DEFAULT_LOOKBACK_WEEKS,
    DEFAULT_POSTURE,
    DEFAULT_STRATEGY,
    DEFAULT_SUGGESTION_NO_DATA,
    MAX_BUFFER_PCT,
    MAX_LOOKBACK_WEEKS,
    MIN_LOOKBACK_WEEKS,
    STORE_KEY_MAP,
)
from ..domain.models import ForecastStrategy, Posture


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostureProfile:
    """
    Numeric behaviour attached to a posture.

    Attributes:
        k: Safety factor applied to σ (one-sided z-score)
        service_level: Approximate one-sided service level of k
        growth_cap: Max absolute trend adjustment (0.12 = ±12%)
        blend_weights: (recency, year_ago, trailing_12m), sums to 1
        without_year_ago: (recency, trailing_12m) when year-ago data is missing
        without_baseline: (recency, year_ago) when the 12-month baseline is missing
        label: Display name
    """
    k: float
    service_level: float
    growth_cap: float
    blend_weights: Tuple[float, float, float]
    without_year_ago: Tuple[float, float]
    without_baseline: Tuple[float, float]
    label: str


POSTURE_PROFILES: Dict[Posture, PostureProfile] = {
    Posture.CONSERVATIVE: PostureProfile(
        k=1.0, service_level=0.84, growth_cap=0.05,
        blend_weights=(0.45, 0.40, 0.15),
        without_year_ago=(0.65, 0.35), without_baseline=(0.50, 0.50), label="Conservador",
    ),
    Posture.BALANCED: PostureProfile(
        k=1.28, service_level=0.90, growth_cap=0.12,
        blend_weights=(0.60, 0.30, 0.10),
        without_year_ago=(0.75, 0.25), without_baseline=(0.65, 0.35), label="Equilibrado",
    ),
    Posture.AGGRESSIVE: PostureProfile(
        k=1.65, service_level=0.95, growth_cap=0.22,
        blend_weights=(0.70, 0.20, 0.10),
        without_year_ago=(0.85, 0.15), without_baseline=(0.75, 0.25), label="Agressivo",
    ),
}

_POSTURE_ALIASES = {
    "conservador": Posture.CONSERVATIVE,
    "conservative": Posture.CONSERVATIVE,
    "equilibrado": Posture.BALANCED,
    "balanced": Posture.BALANCED,
    "agressivo": Posture.AGGRESSIVE,
    "aggressive": Posture.AGGRESSIVE,
}


@dataclass(frozen=True)
class PlanningConfig:
    """Configuration resolved once per request and passed by value."""
    lookback_weeks: int = DEFAULT_LOOKBACK_WEEKS
    posture: Posture = Posture(DEFAULT_POSTURE)
    default_suggestion: float = DEFAULT_SUGGESTION_NO_DATA
    buffer_pct: float = DEFAULT_BUFFER_PCT / 100.0     # fraction, 0.05 = 5%
    strategy: ForecastStrategy = ForecastStrategy(DEFAULT_STRATEGY)
    profile: PostureProfile = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.lookback_weeks < MIN_LOOKBACK_WEEKS:
            raise ValueError(f"lookback_weeks must be >= {MIN_LOOKBACK_WEEKS}")
        if self.default_suggestion < 0:
            raise ValueError("default_suggestion cannot be negative")
        if not 0.0 <= self.buffer_pct <= MAX_BUFFER_PCT / 100.0:
            raise ValueError("buffer_pct must be within 0-30%")
        object.__setattr__(self, "profile", POSTURE_PROFILES[self.posture])

    @property
    def k(self) -> float:
        return self.profile.k

    def to_dict(self) -> Dict[str, Any]:
        """Echo of the resolved configuration for traceability."""
        return {
            "lookback_weeks": self.lookback_weeks,
            "posture": self.posture.value,
            "posture_label": self.profile.label,
            "k_factor": self.profile.k,
            "service_level": f"{self.profile.service_level:.0%}",
            "default_suggestion": self.default_suggestion,
            "buffer_pct": round(self.buffer_pct * 100, 2),
            "strategy": self.strategy.value,
        }


def parse_posture(raw: Any) -> Optional[Posture]:
    """Map a stored posture value (Portuguese or English) to Posture, or None."""
    if isinstance(raw, Posture):
        return raw
    if not isinstance(raw, str):
        return None
    return _POSTURE_ALIASES.get(raw.strip().lower())


def _value(section: Mapping[str, Any], key: str, default: Any) -> Any:
    """Read `key` from a settings section; entries may be {"value": v} or bare v."""
    entry = section.get(key, default)
    if isinstance(entry, Mapping):
        return entry.get("value", default)
    return entry


def validate_planning_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize the planning settings section.

    Applies fallback defaults and clamps values to valid ranges.
    Returns a normalized settings dict (does not raise exceptions).

    Args:
        settings: Full settings dict (may lack the "planning" section)

    Returns:
        Normalized settings dict with a complete "planning" section
    """
    section = settings.get("planning", {}) if isinstance(settings, Mapping) else {}
    if not isinstance(section, Mapping):
        logger.warning("Planning settings section is not a mapping; using defaults")
        section = {}

    lookback_raw = _value(section, "lookback_weeks", DEFAULT_LOOKBACK_WEEKS)
    try:
        lookback_weeks = int(float(lookback_raw))
        lookback_weeks = max(MIN_LOOKBACK_WEEKS, min(MAX_LOOKBACK_WEEKS, lookback_weeks))
    except (ValueError, TypeError, OverflowError):
        logger.warning("Invalid lookback_weeks %r; using %d", lookback_raw, DEFAULT_LOOKBACK_WEEKS)
        lookback_weeks = DEFAULT_LOOKBACK_WEEKS

    posture_raw = _value(section, "posture", DEFAULT_POSTURE)
    posture = parse_posture(posture_raw)
    if posture is None:
        logger.warning("Unknown posture %r; using %s", posture_raw, DEFAULT_POSTURE)
        posture = Posture(DEFAULT_POSTURE)

    default_raw = _value(section, "default_suggestion", DEFAULT_SUGGESTION_NO_DATA)
    try:
        default_suggestion = float(default_raw)
        if not math.isfinite(default_suggestion):
            raise ValueError(default_raw)
        default_suggestion = max(0.0, default_suggestion)
    except (ValueError, TypeError):
        logger.warning("Invalid default_suggestion %r; using %s", default_raw, DEFAULT_SUGGESTION_NO_DATA)
        default_suggestion = DEFAULT_SUGGESTION_NO_DATA

    buffer_raw = _value(section, "buffer_pct", DEFAULT_BUFFER_PCT)
    try:
        buffer_pct = float(buffer_raw)
        if math.isnan(buffer_pct):
            raise ValueError(buffer_raw)
        buffer_pct = max(0.0, min(MAX_BUFFER_PCT, buffer_pct))
    except (ValueError, TypeError):
        logger.warning("Invalid buffer_pct %r; using %s", buffer_raw, DEFAULT_BUFFER_PCT)
        buffer_pct = DEFAULT_BUFFER_PCT

    strategy_raw = _value(section, "strategy", DEFAULT_STRATEGY)
    try:
        strategy = ForecastStrategy(str(strategy_raw).strip().lower())
    except ValueError:
        logger.warning("Unknown strategy %r; using %s", strategy_raw, DEFAULT_STRATEGY)
        strategy = ForecastStrategy(DEFAULT_STRATEGY)

    normalized = dict(settings) if isinstance(settings, Mapping) else {}
    normalized["planning"] = {
        "lookback_weeks": {"value": lookback_weeks},
        "posture": {"value": posture.value},
        "default_suggestion": {"value": default_suggestion},
        "buffer_pct": {"value": buffer_pct},
        "strategy": {"value": strategy.value},
    }
    return normalized


def settings_from_store_rows(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Convert configuration-store rows ({"chave": ..., "valor": ...}) into a
    settings dict with a "planning" section. Unknown keys are ignored.
    """
    section: Dict[str, Any] = {}
    for row in rows:
        key = row.get("chave", row.get("key"))
        if key not in STORE_KEY_MAP:
            continue
        section[STORE_KEY_MAP[key]] = {"value": row.get("valor", row.get("value"))}
    return {"planning": section}


def resolve_planning_config(settings: Optional[Dict[str, Any]] = None) -> PlanningConfig:
    """
    Resolve the PlanningConfig for one request.

    None or {} (store empty / unreachable) yields the hard-coded defaults.
    """
    planning = validate_planning_settings(settings or {})["planning"]
    config = PlanningConfig(
        lookback_weeks=planning["lookback_weeks"]["value"],
        posture=Posture(planning["posture"]["value"]),
        default_suggestion=planning["default_suggestion"]["value"],
        buffer_pct=planning["buffer_pct"]["value"] / 100.0,
        strategy=ForecastStrategy(planning["strategy"]["value"]),
    )
    logger.info("Planning config resolved: %s", config.to_dict())
    return config
