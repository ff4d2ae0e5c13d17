"""
Project configuration and constants.

Hard-coded planning defaults used whenever the configuration store is empty,
unreachable or holds a value that cannot be parsed.
"""
from typing import Dict, Tuple


# ============================================================
# Planning defaults (can be overridden via settings "planning" section)
# ============================================================

DEFAULT_LOOKBACK_WEEKS = 8
MIN_LOOKBACK_WEEKS = 4
MAX_LOOKBACK_WEEKS = 104

DEFAULT_POSTURE = "equilibrado"
DEFAULT_STRATEGY = "simple"

DEFAULT_SUGGESTION_NO_DATA = 10.0

DEFAULT_BUFFER_PCT = 5.0       # percent
MAX_BUFFER_PCT = 30.0          # percent

# Loss rate used in the production division never exceeds this value
MAX_LOSS_RATE = 0.90

# Historical damping: candidate = max(DAMPING_FLOOR, 1 - |impact| * DAMPING_SLOPE)
DAMPING_FLOOR = 0.2
DAMPING_SLOPE = 1.2

# Trend display threshold (±8% → growing / decreasing)
TREND_LABEL_THRESHOLD = 0.08

# Minimum weeks with data before trend / blending kick in
MIN_WEEKS_FOR_TREND = 4
MIN_WEEKS_FOR_BLEND = 4

# Year-ago window: 3 weeks centred on the same week one year earlier
YEAR_AGO_WINDOW_WEEKS = 3
WEEKS_PER_YEAR = 52

# Year-ago share in the blended loss rate
YEAR_AGO_LOSS_WEIGHT = 0.30

# Sector sentinel meaning "every sector"
ALL_SECTORS_SENTINELS = frozenset({"Todos", "todos", "all", "ALL", "*"})


# ============================================================
# Configuration store keys (flat key/value rows)
# ============================================================

STORE_KEY_MAP: Dict[str, str] = {
    "planejamento_semanas_historico": "lookback_weeks",
    "planejamento_postura": "posture",
    "planejamento_sugestao_sem_dados": "default_suggestion",
    "planejamento_buffer_pct": "buffer_pct",
    "planejamento_estrategia": "strategy",
}


# ============================================================
# Confidence thresholds: (high, high_with_year_ago, medium)
# ============================================================

CONFIDENCE_THRESHOLDS: Tuple[int, int, int] = (8, 6, 4)
