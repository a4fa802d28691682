"""
Progression Domain Constants

Purpose
-------
Built-in balance values for the progression engine: EXP curve, stat gain
rates, decay rules and validation bounds. These are the defaults used when
`config/progression.yaml` is absent or omits a section; the YAML file and
`BalanceConfig` can override every one of them.

IMPORTANT:
This module contains PROGRESSION constants only. Infrastructure settings
(database pool sizes, log levels) belong in src/core/config.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Tables are keyed by enum members so a typo fails at import time
- No side effects at import time
"""

from __future__ import annotations

from typing import Dict, Final, Mapping, Tuple

from src.domain.models.enums import ActivityCategory, ActivityKind, StatKind

# ============================================================================
# EXPERIENCE CURVE
# ============================================================================

BASE_EXP_THRESHOLD: Final[float] = 1000.0  # EXP needed to leave level 1
EXP_GROWTH_RATE: Final[float] = 1.2  # threshold(level) = base * rate^(level-1)
EXP_PER_MINUTE: Final[float] = 1.0
MIN_LEVEL: Final[int] = 1

# Kinds that award a flat EXP amount regardless of duration
FIXED_EXP_GAINS: Final[Mapping[ActivityKind, float]] = {
    ActivityKind.QUIT_BAD_HABIT: 60.0,
}

# ============================================================================
# STAT GAINS
# ============================================================================

# Rate per hour of activity
HOURLY_STAT_RATES: Final[Mapping[ActivityKind, Mapping[StatKind, float]]] = {
    ActivityKind.WORKOUT_WEIGHTS: {StatKind.STRENGTH: 0.06, StatKind.ENDURANCE: 0.04},
    ActivityKind.WORKOUT_CARDIO: {StatKind.AGILITY: 0.06, StatKind.ENDURANCE: 0.04},
    ActivityKind.WORKOUT_YOGA: {StatKind.AGILITY: 0.05, StatKind.FOCUS: 0.03},
    ActivityKind.STUDY_SERIOUS: {StatKind.INTELLIGENCE: 0.06, StatKind.FOCUS: 0.04},
    ActivityKind.STUDY_CASUAL: {StatKind.INTELLIGENCE: 0.04, StatKind.CHARISMA: 0.03},
    ActivityKind.MEDITATION: {StatKind.FOCUS: 0.05},
    ActivityKind.SOCIALIZING: {StatKind.CHARISMA: 0.05, StatKind.FOCUS: 0.02},
    ActivityKind.SLEEP_TRACKING: {StatKind.ENDURANCE: 0.02},
    ActivityKind.DIET_HEALTHY: {StatKind.ENDURANCE: 0.03},
}

# Flat gains not scaled by duration
FIXED_STAT_GAINS: Final[Mapping[ActivityKind, Mapping[StatKind, float]]] = {
    ActivityKind.QUIT_BAD_HABIT: {StatKind.FOCUS: 0.03},
}

# ============================================================================
# DECAY
# ============================================================================

DECAY_THRESHOLD_DAYS: Final[int] = 3
DECAY_PER_PERIOD: Final[float] = 0.01
MAX_DECAY_PER_CHECK: Final[float] = 0.05

DECAY_AFFECTED_STATS: Final[Mapping[ActivityCategory, Tuple[StatKind, ...]]] = {
    ActivityCategory.WORKOUT: (StatKind.STRENGTH, StatKind.AGILITY, StatKind.ENDURANCE),
    ActivityCategory.STUDY: (StatKind.INTELLIGENCE, StatKind.FOCUS),
}

# Warning severities, measured in days past the decay threshold
DECAY_CRITICAL_EXTRA_DAYS: Final[int] = 7
DECAY_HIGH_EXTRA_DAYS: Final[int] = 3

# ============================================================================
# VALIDATION BOUNDS
# ============================================================================

STAT_FLOOR: Final[float] = 1.0
LARGE_STAT_WARNING: Final[float] = 1e6
LARGE_EXP_REVERSAL_WARNING: Final[float] = 1e9
EXPORT_STAT_LIMIT: Final[float] = 1e15
MAX_DURATION_MINUTES: Final[int] = 1440
MAX_ACTIVITY_NOTES_LENGTH: Final[int] = 500

# ============================================================================
# HISTORY & BACKUP
# ============================================================================

MAX_STREAK_DAYS: Final[int] = 365
DEFAULT_RECENT_LIMIT: Final[int] = 10
BACKUP_FORMAT_VERSION: Final[str] = "1.0"


def copy_rate_table(
    table: Mapping[ActivityKind, Mapping[StatKind, float]],
) -> Dict[ActivityKind, Dict[StatKind, float]]:
    return {kind: dict(rates) for kind, rates in table.items()}
