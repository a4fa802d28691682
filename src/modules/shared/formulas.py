"""
Progression Math

Purpose
-------
Pure calculation functions for the EXP/level state machine:

- the per-level EXP threshold curve
- the forward cascade (EXP gain -> possibly several level-ups)
- its exact inverse (EXP removal -> possibly several level-downs)
- the EXP rule that turns an activity into EXP

Design Notes
------------
All formulas:
- Accept parameters explicitly (balance values default to the built-ins)
- Return new values; nothing is mutated
- Raise `InvalidArgumentError` for out-of-domain input

Cascade loops are bounded by `max_cascade_iterations`. Reaching the bound
is not an error: the result reached so far is returned with
`capped_at_safety_limit=True` and a warning is logged.

`apply_removal` is the left-inverse of `apply_gain`: gaining X and then
removing X returns the original `(level, exp)` pair, except that removal
stops at level 1 and discards any remaining deficit.

Usage
-----
    from src.modules.shared.formulas import apply_gain, exp_threshold

    exp_threshold(2)           # 1200.0
    apply_gain(1, 950.0, 1000) # LevelChange(new_level=2, new_exp=950.0, ...)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from src.core.logging.logger import get_logger
from src.domain.models.enums import ActivityKind
from src.modules.shared.balance import BalanceConfig
from src.modules.shared.constants import MIN_LEVEL
from src.modules.shared.exceptions import InvalidArgumentError

logger = get_logger(__name__)

_DEFAULT_BALANCE = BalanceConfig()


@dataclass(frozen=True)
class LevelChange:
    """
    Outcome of a level cascade.

    Attributes
    ----------
    new_level : int
        Level after the cascade.
    new_exp : float
        EXP toward the next level after the cascade.
    levels_changed : int
        Number of levels gained (forward) or lost (reverse).
    capped_at_safety_limit : bool
        True when the loop stopped at the iteration bound.
    exp_deficit_discarded : float
        EXP that could not be removed because level 1 was reached.
    """

    new_level: int
    new_exp: float
    levels_changed: int
    capped_at_safety_limit: bool = False
    exp_deficit_discarded: float = 0.0

    @property
    def levels_gained(self) -> int:
        return self.levels_changed

    @property
    def levels_lost(self) -> int:
        return self.levels_changed


def _check_level(level: int) -> None:
    if isinstance(level, bool) or not isinstance(level, int):
        raise InvalidArgumentError("level", f"must be an integer, got {level!r}")
    if level < MIN_LEVEL:
        raise InvalidArgumentError("level", f"must be >= {MIN_LEVEL}, got {level}")


def _check_amount(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidArgumentError(name, f"must be finite, got {value}")
    if value < 0:
        raise InvalidArgumentError(name, f"must be non-negative, got {value}")


def exp_threshold(level: int, balance: Optional[BalanceConfig] = None) -> float:
    """
    EXP required to advance from `level` to `level + 1`.

    Formula: base * growth^(level - 1)

    Example:
        >>> exp_threshold(1)
        1000.0
        >>> exp_threshold(2)
        1200.0
        >>> round(exp_threshold(11), 2)
        6191.74
    """
    _check_level(level)
    balance = balance or _DEFAULT_BALANCE
    return balance.base_exp_threshold * (balance.exp_growth_rate ** (level - 1))


def apply_gain(
    level: int,
    current_exp: float,
    exp_to_add: float,
    balance: Optional[BalanceConfig] = None,
) -> LevelChange:
    """
    Add EXP and cascade level-ups while the threshold is met.

    Example:
        >>> apply_gain(1, 950.0, 1000.0)
        LevelChange(new_level=2, new_exp=950.0, levels_changed=1, ...)
    """
    balance = balance or _DEFAULT_BALANCE
    _check_level(level)
    _check_amount("current_exp", current_exp)
    _check_amount("exp_to_add", exp_to_add)

    new_level = level
    exp = current_exp + exp_to_add
    iterations = 0
    capped = False

    while exp >= exp_threshold(new_level, balance):
        if iterations >= balance.max_cascade_iterations:
            capped = True
            break
        exp -= exp_threshold(new_level, balance)
        new_level += 1
        iterations += 1

    if capped:
        logger.warning(
            "Level-up cascade stopped at safety limit",
            extra={
                "start_level": level,
                "reached_level": new_level,
                "exp_to_add": exp_to_add,
                "max_iterations": balance.max_cascade_iterations,
            },
        )

    return LevelChange(
        new_level=new_level,
        new_exp=exp,
        levels_changed=new_level - level,
        capped_at_safety_limit=capped,
    )


def apply_removal(
    level: int,
    current_exp: float,
    exp_to_remove: float,
    balance: Optional[BalanceConfig] = None,
) -> LevelChange:
    """
    Remove EXP and cascade level-downs while EXP is negative.

    Each level-down adds back the threshold of the level being dropped to.
    At level 1 EXP is clamped to 0 and the remaining deficit is discarded
    (reported in `exp_deficit_discarded`).

    Example:
        >>> apply_removal(2, 950.0, 1000.0)
        LevelChange(new_level=1, new_exp=950.0, levels_changed=1, ...)
    """
    balance = balance or _DEFAULT_BALANCE
    _check_level(level)
    if not math.isfinite(current_exp):
        raise InvalidArgumentError("current_exp", f"must be finite, got {current_exp}")
    _check_amount("exp_to_remove", exp_to_remove)

    new_level = level
    exp = current_exp - exp_to_remove
    iterations = 0
    capped = False

    while exp < 0 and new_level > MIN_LEVEL:
        if iterations >= balance.max_cascade_iterations:
            capped = True
            break
        new_level -= 1
        exp += exp_threshold(new_level, balance)
        iterations += 1

    deficit = 0.0
    if exp < 0:
        deficit = -exp
        exp = 0.0

    if capped:
        logger.warning(
            "Level-down cascade stopped at safety limit",
            extra={
                "start_level": level,
                "reached_level": new_level,
                "exp_to_remove": exp_to_remove,
                "max_iterations": balance.max_cascade_iterations,
            },
        )

    return LevelChange(
        new_level=new_level,
        new_exp=exp,
        levels_changed=level - new_level,
        capped_at_safety_limit=capped,
        exp_deficit_discarded=deficit,
    )


def compute_exp_gain(
    kind: ActivityKind,
    duration_minutes: int,
    balance: Optional[BalanceConfig] = None,
) -> float:
    """
    EXP awarded for an activity: per-minute by default, flat for kinds in
    the fixed-EXP table.

    Example:
        >>> compute_exp_gain(ActivityKind.STUDY_SERIOUS, 90)
        90.0
        >>> compute_exp_gain(ActivityKind.QUIT_BAD_HABIT, 5)
        60.0
    """
    balance = balance or _DEFAULT_BALANCE
    kind = ActivityKind.from_value(kind)
    if duration_minutes < 0:
        raise InvalidArgumentError(
            "duration_minutes", f"must be non-negative, got {duration_minutes}"
        )
    fixed = balance.fixed_exp.get(kind)
    if fixed is not None:
        return float(fixed)
    return float(duration_minutes) * balance.exp_per_minute


# ============================================================================
# Display helpers
# ============================================================================


def exp_progress_fraction(
    level: int, current_exp: float, balance: Optional[BalanceConfig] = None
) -> float:
    """Fraction of the current level completed, clamped to [0.0, 1.0]."""
    threshold = exp_threshold(level, balance)
    return max(0.0, min(1.0, current_exp / threshold))


def exp_to_next_level(
    level: int, current_exp: float, balance: Optional[BalanceConfig] = None
) -> float:
    return max(0.0, exp_threshold(level, balance) - current_exp)


def total_exp_for_level(level: int, balance: Optional[BalanceConfig] = None) -> float:
    """
    Cumulative EXP needed to reach `level` from level 1 with 0 EXP.

    Example:
        >>> total_exp_for_level(1)
        0.0
        >>> total_exp_for_level(3)
        2200.0
    """
    _check_level(level)
    return float(sum(exp_threshold(lvl, balance) for lvl in range(MIN_LEVEL, level)))
