"""Analytics package for planning settings and posture profiles."""

from .planning_settings import (
    POSTURE_PROFILES,
    PlanningConfig,
    PostureProfile,
    parse_posture,
    resolve_planning_config,
    settings_from_store_rows,
    validate_planning_settings,
)

__all__ = [
    "POSTURE_PROFILES",
    "PlanningConfig",
    "PostureProfile",
    "parse_posture",
    "resolve_planning_config",
    "settings_from_store_rows",
    "validate_planning_settings",
]
