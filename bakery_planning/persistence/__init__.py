"""Snapshot persistence."""
from .json_snapshot import PlanningSnapshot, load_snapshot, snapshot_from_dict

__all__ = ["PlanningSnapshot", "load_snapshot", "snapshot_from_dict"]
