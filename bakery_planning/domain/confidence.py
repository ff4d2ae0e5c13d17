"""
Forecast confidence classification (advisory metadata, never feeds the math).
"""
from typing import Dict

from ..config import CONFIDENCE_THRESHOLDS
from .models import ConfidenceLevel


CONFIDENCE_LABELS: Dict[ConfidenceLevel, str] = {
    ConfidenceLevel.NO_DATA: "No history",
    ConfidenceLevel.LOW: "Low",
    ConfidenceLevel.MEDIUM: "Medium",
    ConfidenceLevel.HIGH: "High",
}


def classify_confidence(weeks_with_data: int, has_year_ago: bool = False) -> ConfidenceLevel:
    """
    0 weeks → NO_DATA; >= 8 weeks, or >= 6 with year-ago data → HIGH;
    >= 4 → MEDIUM; otherwise LOW.
    """
    high, high_with_year_ago, medium = CONFIDENCE_THRESHOLDS
    if weeks_with_data <= 0:
        return ConfidenceLevel.NO_DATA
    if weeks_with_data >= high or (has_year_ago and weeks_with_data >= high_with_year_ago):
        return ConfidenceLevel.HIGH
    if weeks_with_data >= medium:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW
