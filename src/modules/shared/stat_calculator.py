"""
Stat Calculator

Purpose
-------
Pure functions for the six-stat model:

- activity -> stat gains (rate per hour, or flat for fixed-gain kinds)
- reversal amounts (captured gains first, recomputed gains for legacy records)
- floor-clamped application of any delta map (gains, reversals, decay)
- inactivity decay amounts per category

Design Notes
------------
`apply_delta` is the only way stats change. It clamps every result to the
floor (1.0) and never applies a ceiling, so no caller can push a stat below
the floor or cap its growth. A reversal that would cross the floor loses
the excess reduction; nothing is carried over.

Usage
-----
    gains = compute_gains(ActivityKind.STUDY_SERIOUS, 90)
    # {StatKind.INTELLIGENCE: 0.09, StatKind.FOCUS: 0.06}
    new_stats = apply_delta(profile.stats, gains)
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, Mapping, Optional

from src.core.logging.logger import get_logger
from src.domain.models.activity import ActivityRecord
from src.domain.models.base import StatMap, ensure_utc
from src.domain.models.enums import ActivityCategory, ActivityKind, StatKind
from src.domain.models.profile import UserProfile
from src.modules.shared.balance import BalanceConfig
from src.modules.shared.constants import STAT_FLOOR
from src.modules.shared.exceptions import InvalidArgumentError, UnknownEnumValueError

logger = get_logger(__name__)

_DEFAULT_BALANCE = BalanceConfig()


# ============================================================================
# Gains and reversals
# ============================================================================


def _activity_kind(kind: object) -> ActivityKind:
    try:
        return ActivityKind.from_value(kind)
    except UnknownEnumValueError as exc:
        raise InvalidArgumentError("activity_kind", f"unknown activity kind {kind!r}") from exc


def compute_gains(
    kind: ActivityKind,
    duration_minutes: float,
    balance: Optional[BalanceConfig] = None,
) -> Dict[StatKind, float]:
    """
    Stat gains for one activity.

    Hourly kinds yield rate * hours. Fixed-gain kinds ignore duration.

    Raises
    ------
    InvalidArgumentError
        Unknown kind, or negative/non-finite duration.
    """
    balance = balance or _DEFAULT_BALANCE
    kind = _activity_kind(kind)
    if not math.isfinite(duration_minutes) or duration_minutes < 0:
        raise InvalidArgumentError(
            "duration_minutes", f"must be a non-negative number, got {duration_minutes}"
        )

    fixed = balance.fixed_gains.get(kind)
    if fixed is not None:
        return {stat: float(amount) for stat, amount in fixed.items()}

    hours = duration_minutes / 60.0
    rates = balance.hourly_rates.get(kind, {})
    return {stat: rate * hours for stat, rate in rates.items()}


def compute_reversal(
    kind: ActivityKind,
    duration_minutes: float,
    stored_gains: Optional[StatMap],
    balance: Optional[BalanceConfig] = None,
) -> Dict[StatKind, float]:
    """
    Amounts to remove when undoing an activity.

    Captured gains are returned verbatim. Only when they are empty (legacy
    record) are gains recomputed from the current table, which is
    approximate if the table changed since the record was logged.
    """
    if stored_gains:
        return dict(stored_gains)

    logger.debug(
        "Recomputing gains for legacy record reversal",
        extra={"activity_kind": str(kind), "duration_minutes": duration_minutes},
    )
    return compute_gains(kind, duration_minutes, balance)


def negate(deltas: StatMap) -> Dict[StatKind, float]:
    return {stat: -amount for stat, amount in deltas.items()}


def apply_delta(
    current_stats: StatMap,
    deltas: StatMap,
    floor: float = STAT_FLOOR,
) -> Dict[StatKind, float]:
    """
    Apply `deltas` to every stat, clamping each result to `floor`.

    Stats missing from `current_stats` start at the floor. There is no
    upper bound.

    Example:
        >>> apply_delta({StatKind.STRENGTH: 1.03}, {StatKind.STRENGTH: -0.05})[StatKind.STRENGTH]
        1.0
    """
    result: Dict[StatKind, float] = {}
    for stat in StatKind:
        value = current_stats.get(stat, floor) + deltas.get(stat, 0.0)
        result[stat] = max(floor, value)
    return result


def validate_reversal(current_stats: StatMap, reversal: StatMap) -> bool:
    """
    Pre-check that subtracting `reversal` from `current_stats` is safe.

    Rejects an empty stat map, NaN/infinite/negative reversal amounts and
    NaN/infinite/negative current values. Underflow is not a rejection
    reason since `apply_delta` clamps to the floor.
    """
    if not current_stats:
        logger.warning("Reversal rejected: profile has no stats")
        return False

    for stat, amount in reversal.items():
        if not math.isfinite(amount) or amount < 0:
            logger.warning(
                "Reversal rejected: invalid reversal amount",
                extra={"stat": stat.value, "amount": amount},
            )
            return False

    for stat, value in current_stats.items():
        if not math.isfinite(value) or value < 0:
            logger.warning(
                "Reversal rejected: invalid current stat value",
                extra={"stat": stat.value, "value": value},
            )
            return False

    return True


def stat_totals(
    records: Iterable[ActivityRecord],
    balance: Optional[BalanceConfig] = None,
) -> Dict[StatKind, float]:
    """Sum of gains across `records`, using captured gains where present."""
    totals: Dict[StatKind, float] = {stat: 0.0 for stat in StatKind}
    for record in records:
        gains = compute_reversal(record.kind, record.duration_minutes, record.stat_gains, balance)
        for stat, amount in gains.items():
            totals[stat] += amount
    return totals


def max_gain_stat(gains: StatMap) -> Optional[StatKind]:
    """The stat with the largest gain, or None when nothing was gained."""
    positive = {stat: amount for stat, amount in gains.items() if amount > 0}
    if not positive:
        return None
    return max(positive, key=lambda stat: positive[stat])


# ============================================================================
# Decay
# ============================================================================


def count_weekdays_between(start: datetime, end: datetime) -> int:
    """Mon-Fri calendar dates after `start`'s date, up to and including `end`'s date."""
    current = ensure_utc(start).date()
    end_date = ensure_utc(end).date()
    weekdays = 0
    while current < end_date:
        current += timedelta(days=1)
        if current.weekday() < 5:
            weekdays += 1
    return weekdays


def days_inactive(
    last_activity: datetime, now: datetime, relaxed_weekend_mode: bool = False
) -> int:
    """Whole days since `last_activity`; weekdays only in relaxed mode."""
    if relaxed_weekend_mode:
        return count_weekdays_between(last_activity, now)
    return (ensure_utc(now) - ensure_utc(last_activity)).days


def decay_amount(days: int, balance: Optional[BalanceConfig] = None) -> float:
    """
    Negative decay for `days` of inactivity, or 0.0 below the threshold.

    One `per_period` step per full threshold period, capped at
    `max_per_check` in a single application.

    Example:
        >>> decay_amount(2)
        0.0
        >>> decay_amount(7)
        -0.02
        >>> decay_amount(60)
        -0.05
    """
    balance = balance or _DEFAULT_BALANCE
    if days < balance.decay_threshold_days:
        return 0.0
    periods = days // balance.decay_threshold_days
    total = periods * balance.decay_per_period
    return -min(total, balance.max_decay_per_check)


def compute_category_decay(
    profile: UserProfile,
    category: ActivityCategory,
    now: datetime,
    relaxed_weekend_mode: bool = False,
    balance: Optional[BalanceConfig] = None,
) -> Dict[StatKind, float]:
    balance = balance or _DEFAULT_BALANCE
    last = profile.last_activity_for_category(category)
    if last is None:
        return {}
    amount = decay_amount(days_inactive(last, now, relaxed_weekend_mode), balance)
    if amount == 0.0:
        return {}
    return {stat: amount for stat in balance.decay_affected_stats.get(category, ())}


def compute_decay(
    profile: UserProfile,
    now: datetime,
    relaxed_weekend_mode: bool = False,
    balance: Optional[BalanceConfig] = None,
) -> Dict[StatKind, float]:
    """Combined negative deltas for every decaying category."""
    balance = balance or _DEFAULT_BALANCE
    deltas: Dict[StatKind, float] = {}
    for category in balance.decay_affected_stats:
        for stat, amount in compute_category_decay(
            profile, category, now, relaxed_weekend_mode, balance
        ).items():
            deltas[stat] = deltas.get(stat, 0.0) + amount
    return deltas


def apply_decay(
    profile: UserProfile,
    degradation: Mapping[StatKind, float],
    balance: Optional[BalanceConfig] = None,
) -> UserProfile:
    balance = balance or _DEFAULT_BALANCE
    if not degradation:
        return profile
    return profile.replace(stats=apply_delta(profile.stats, degradation, balance.stat_floor))
