"""
Typed balance configuration.

Purpose
-------
Turn the raw YAML balance tree (see `src.core.config.loader`) into a frozen
`BalanceConfig` consumed by the pure calculation modules. Any section the
file omits falls back to the built-in constants, so the engine runs with no
balance file at all.

Design Notes
------------
- Parsing converts activity and stat names to enum members; an unknown name
  is a `ConfigValidationError`, never silently dropped.
- Range checks (positive thresholds, non-negative rates) happen here, after
  the structural schema check in the loader.
- `with_hourly_rates()` returns a copy with a different gain table. The
  exact-reversal guarantee means records logged under the old table still
  reverse by their captured gains.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from src.core.config.config import Config
from src.core.config.errors import ConfigValidationError
from src.core.config.loader import load_yaml_config
from src.core.logging.logger import get_logger
from src.domain.models.enums import ActivityCategory, ActivityKind, StatKind
from src.modules.shared import constants
from src.modules.shared.exceptions import UnknownEnumValueError

logger = get_logger(__name__)

RateTable = Mapping[ActivityKind, Mapping[StatKind, float]]


@dataclass(frozen=True)
class BalanceConfig:
    """All tunables of the progression rules."""

    base_exp_threshold: float = constants.BASE_EXP_THRESHOLD
    exp_growth_rate: float = constants.EXP_GROWTH_RATE
    exp_per_minute: float = constants.EXP_PER_MINUTE
    fixed_exp: Mapping[ActivityKind, float] = field(
        default_factory=lambda: dict(constants.FIXED_EXP_GAINS)
    )
    hourly_rates: RateTable = field(
        default_factory=lambda: constants.copy_rate_table(constants.HOURLY_STAT_RATES)
    )
    fixed_gains: RateTable = field(
        default_factory=lambda: constants.copy_rate_table(constants.FIXED_STAT_GAINS)
    )
    decay_threshold_days: int = constants.DECAY_THRESHOLD_DAYS
    decay_per_period: float = constants.DECAY_PER_PERIOD
    max_decay_per_check: float = constants.MAX_DECAY_PER_CHECK
    decay_affected_stats: Mapping[ActivityCategory, Tuple[StatKind, ...]] = field(
        default_factory=lambda: dict(constants.DECAY_AFFECTED_STATS)
    )
    stat_floor: float = constants.STAT_FLOOR
    large_stat_warning: float = constants.LARGE_STAT_WARNING
    large_exp_reversal_warning: float = constants.LARGE_EXP_REVERSAL_WARNING
    export_stat_limit: float = constants.EXPORT_STAT_LIMIT
    max_duration_minutes: int = constants.MAX_DURATION_MINUTES
    max_cascade_iterations: int = 100
    future_tolerance_minutes: int = 60

    @classmethod
    def default(cls) -> "BalanceConfig":
        return cls()

    def replace(self, **changes: Any) -> "BalanceConfig":
        return dataclasses.replace(self, **changes)

    def with_hourly_rates(self, hourly_rates: RateTable) -> "BalanceConfig":
        return self.replace(hourly_rates=constants.copy_rate_table(hourly_rates))

    @classmethod
    def from_mapping(
        cls,
        tree: Mapping[str, Any],
        *,
        max_cascade_iterations: int = 100,
        future_tolerance_minutes: int = 60,
    ) -> "BalanceConfig":
        """
        Build a BalanceConfig from a schema-validated YAML tree.

        Raises
        ------
        ConfigValidationError
            On unknown activity/stat/category names or out-of-range values.
        """
        overrides: Dict[str, Any] = {
            "max_cascade_iterations": max_cascade_iterations,
            "future_tolerance_minutes": future_tolerance_minutes,
        }

        experience = tree.get("experience") or {}
        _copy_number(experience, "base_threshold", overrides, "base_exp_threshold")
        _copy_number(experience, "growth_rate", overrides, "exp_growth_rate")
        _copy_number(experience, "exp_per_minute", overrides, "exp_per_minute")
        if "fixed_exp" in experience:
            overrides["fixed_exp"] = {
                _activity(name, "experience.fixed_exp"): float(amount)
                for name, amount in experience["fixed_exp"].items()
            }

        stat_gains = tree.get("stat_gains") or {}
        if "hourly_rates" in stat_gains:
            overrides["hourly_rates"] = _rate_table(
                stat_gains["hourly_rates"], "stat_gains.hourly_rates"
            )
        if "fixed_gains" in stat_gains:
            overrides["fixed_gains"] = _rate_table(
                stat_gains["fixed_gains"], "stat_gains.fixed_gains"
            )

        decay = tree.get("decay") or {}
        _copy_number(decay, "threshold_days", overrides, "decay_threshold_days")
        _copy_number(decay, "per_period", overrides, "decay_per_period")
        _copy_number(decay, "max_per_check", overrides, "max_decay_per_check")
        if "affected_stats" in decay:
            overrides["decay_affected_stats"] = {
                _category(name): tuple(
                    _stat(stat, f"decay.affected_stats.{name}") for stat in stats
                )
                for name, stats in decay["affected_stats"].items()
            }

        validation = tree.get("validation") or {}
        _copy_number(validation, "stat_floor", overrides, "stat_floor")
        _copy_number(validation, "large_stat_warning", overrides, "large_stat_warning")
        _copy_number(
            validation, "large_exp_reversal_warning", overrides, "large_exp_reversal_warning"
        )
        _copy_number(validation, "export_stat_limit", overrides, "export_stat_limit")
        _copy_number(validation, "max_duration_minutes", overrides, "max_duration_minutes")

        balance = cls(**overrides)
        balance.check_ranges()
        return balance

    def check_ranges(self) -> None:
        """Raise ConfigValidationError for values that break the progression rules."""
        if self.base_exp_threshold <= 0:
            raise ConfigValidationError("experience.base_threshold must be positive")
        if self.exp_growth_rate < 1.0:
            raise ConfigValidationError("experience.growth_rate must be >= 1.0")
        if self.exp_per_minute < 0:
            raise ConfigValidationError("experience.exp_per_minute must be non-negative")
        if self.decay_threshold_days < 1:
            raise ConfigValidationError("decay.threshold_days must be >= 1")
        if self.decay_per_period < 0 or self.max_decay_per_check < 0:
            raise ConfigValidationError("decay amounts must be non-negative")
        if self.max_duration_minutes < 1:
            raise ConfigValidationError("validation.max_duration_minutes must be >= 1")
        for table_name, table in (
            ("hourly_rates", self.hourly_rates),
            ("fixed_gains", self.fixed_gains),
        ):
            for kind, rates in table.items():
                for stat, rate in rates.items():
                    if rate < 0:
                        raise ConfigValidationError(
                            f"stat_gains.{table_name}.{kind.value}.{stat.value} "
                            f"must be non-negative; got {rate}"
                        )


def _copy_number(
    section: Mapping[str, Any], key: str, target: Dict[str, Any], attribute: str
) -> None:
    if key in section:
        target[attribute] = section[key]


def _activity(name: Any, path: str) -> ActivityKind:
    try:
        return ActivityKind.from_value(name)
    except UnknownEnumValueError as exc:
        raise ConfigValidationError(f"Unknown activity '{name}' at '{path}'") from exc


def _stat(name: Any, path: str) -> StatKind:
    try:
        return StatKind.from_value(name)
    except UnknownEnumValueError as exc:
        raise ConfigValidationError(f"Unknown stat '{name}' at '{path}'") from exc


def _category(name: Any) -> ActivityCategory:
    try:
        return ActivityCategory.from_value(name)
    except UnknownEnumValueError as exc:
        raise ConfigValidationError(
            f"Unknown category '{name}' at 'decay.affected_stats'"
        ) from exc


def _rate_table(
    raw: Mapping[str, Mapping[str, Any]], path: str
) -> Dict[ActivityKind, Dict[StatKind, float]]:
    return {
        _activity(kind, path): {
            _stat(stat, f"{path}.{kind}"): float(rate) for stat, rate in rates.items()
        }
        for kind, rates in raw.items()
    }


def load_balance_config(path: Optional[Union[str, Path]] = None) -> BalanceConfig:
    """
    Load the balance file and merge it over the built-in defaults.

    Cascade and clock-skew bounds come from `Config` since they are
    operational settings rather than balance.
    """
    tree = load_yaml_config(path)
    balance = BalanceConfig.from_mapping(
        tree,
        max_cascade_iterations=Config.MAX_CASCADE_ITERATIONS,
        future_tolerance_minutes=Config.FUTURE_TIMESTAMP_TOLERANCE_MINUTES,
    )
    logger.debug(
        "Balance config ready",
        extra={
            "base_exp_threshold": balance.base_exp_threshold,
            "exp_growth_rate": balance.exp_growth_rate,
            "decay_threshold_days": balance.decay_threshold_days,
        },
    )
    return balance


__all__ = ["BalanceConfig", "load_balance_config"]
