"""
Progression Validation Layer

Purpose
-------
Stateless guards consulted by the logging, deletion, backup and integrity
paths before any mutation begins.

Two styles, matching how callers use them:
- Tri-state checks (`validate_stat_value`, `validate_stat_map`,
  `validate_timestamp`) return a `ValidationResult` that is VALID, WARNING
  with a sanitized value, or INVALID.
- Raise-on-error checks (`validate_log_input`,
  `ensure_valid_activity_record`) raise `ValidationError` with the reason.

Rules
-----
- NaN and +/-Infinity are never valid.
- A stat below the floor (1.0) is sanitized up to the floor with a warning.
- A stat above `large_stat_warning` (1e6) is kept with a warning; above
  `export_stat_limit` (1e15) it is INVALID for export.
- An activity record needs a non-empty id, a duration in (0, max], a
  known kind, non-negative finite EXP and gains, and a timestamp no more
  than the configured tolerance in the future.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from src.core.logging.logger import get_logger
from src.domain.models.activity import ActivityRecord
from src.domain.models.base import StatMap, ensure_utc
from src.domain.models.enums import ActivityKind, StatKind
from src.domain.models.profile import UserProfile
from src.domain.models.settings import ProgressionSettings
from src.modules.shared.balance import BalanceConfig
from src.modules.shared.constants import MAX_ACTIVITY_NOTES_LENGTH, MIN_LEVEL
from src.modules.shared.exceptions import UnknownEnumValueError, ValidationError

logger = get_logger(__name__)

_DEFAULT_BALANCE = BalanceConfig()


class ValidationStatus(Enum):
    VALID = "valid"
    WARNING = "warning"
    INVALID = "invalid"


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of a tri-state check.

    `value` carries the sanitized value for VALID and WARNING results (and a
    best-effort sanitized value for INVALID ones). `issues` lists every
    individual problem found.
    """

    status: ValidationStatus
    value: Any = None
    message: Optional[str] = None
    issues: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return self.status is not ValidationStatus.INVALID

    @property
    def has_warning(self) -> bool:
        return self.status is ValidationStatus.WARNING

    @classmethod
    def valid(cls, value: Any = None) -> "ValidationResult":
        return cls(ValidationStatus.VALID, value)

    @classmethod
    def warning(cls, value: Any, message: str, issues: Tuple[str, ...] = ()) -> "ValidationResult":
        return cls(ValidationStatus.WARNING, value, message, issues or (message,))

    @classmethod
    def invalid(
        cls, message: str, value: Any = None, issues: Tuple[str, ...] = ()
    ) -> "ValidationResult":
        return cls(ValidationStatus.INVALID, value, message, issues or (message,))


# ============================================================================
# Numbers and stats
# ============================================================================


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def validate_stat_value(
    value: float,
    *,
    for_export: bool = False,
    balance: Optional[BalanceConfig] = None,
) -> ValidationResult:
    """
    Example:
        >>> validate_stat_value(0.5).value
        1.0
        >>> validate_stat_value(float("nan")).is_valid
        False
    """
    balance = balance or _DEFAULT_BALANCE
    floor = balance.stat_floor

    if not is_finite_number(value):
        return ValidationResult.invalid(f"non-finite stat value {value!r}", value=floor)
    if value < floor:
        return ValidationResult.warning(floor, f"below minimum ({value:.2f})")
    if for_export and value > balance.export_stat_limit:
        return ValidationResult.invalid(
            f"exceeds export limit ({value:.0f} > {balance.export_stat_limit:.0f})",
            value=value,
        )
    if value > balance.large_stat_warning:
        return ValidationResult.warning(value, f"extremely large ({value:.0f})")
    return ValidationResult.valid(float(value))


def validate_stat_map(
    stats: StatMap,
    for_export: bool = False,
    balance: Optional[BalanceConfig] = None,
) -> ValidationResult:
    """
    Validate every stat; `value` is the per-stat sanitized map.

    INVALID if the map is empty or any stat is INVALID, WARNING if any stat
    needed sanitizing or is very large.
    """
    if not stats:
        return ValidationResult.invalid("stats map is empty", value={})

    sanitized: Dict[StatKind, float] = {}
    errors: List[str] = []
    warnings: List[str] = []

    for stat, raw in stats.items():
        result = validate_stat_value(raw, for_export=for_export, balance=balance)
        sanitized[stat] = result.value
        if result.status is ValidationStatus.INVALID:
            errors.append(f"{stat.value}: {result.message}")
        elif result.status is ValidationStatus.WARNING:
            warnings.append(f"{stat.value}: {result.message}")

    if errors:
        return ValidationResult.invalid(
            "Stat validation failed: " + ", ".join(errors),
            value=sanitized,
            issues=tuple(errors + warnings),
        )
    if warnings:
        return ValidationResult.warning(
            sanitized, "Stat validation warnings: " + ", ".join(warnings), tuple(warnings)
        )
    return ValidationResult.valid(sanitized)


def validate_timestamp(
    timestamp: datetime,
    now: datetime,
    balance: Optional[BalanceConfig] = None,
) -> ValidationResult:
    """INVALID when `timestamp` is beyond `now` plus the clock-skew tolerance."""
    balance = balance or _DEFAULT_BALANCE
    limit = ensure_utc(now) + timedelta(minutes=balance.future_tolerance_minutes)
    if ensure_utc(timestamp) > limit:
        return ValidationResult.invalid(
            f"timestamp {ensure_utc(timestamp).isoformat()} is in the future", value=timestamp
        )
    return ValidationResult.valid(timestamp)


# ============================================================================
# Activity input and records
# ============================================================================


def validate_duration(duration_minutes: Any, balance: Optional[BalanceConfig] = None) -> int:
    """
    Raises:
        ValidationError: If duration is not an integer in (0, max].
    """
    balance = balance or _DEFAULT_BALANCE
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise ValidationError(
            "duration_minutes", f"must be a whole number of minutes, got {duration_minutes!r}"
        )
    if duration_minutes <= 0:
        raise ValidationError("duration_minutes", "must be greater than 0")
    if duration_minutes > balance.max_duration_minutes:
        raise ValidationError(
            "duration_minutes",
            f"cannot exceed {balance.max_duration_minutes} minutes, got {duration_minutes}",
        )
    return duration_minutes


def validate_log_input(
    kind: Any,
    duration_minutes: Any,
    *,
    now: datetime,
    timestamp: Optional[datetime] = None,
    notes: Optional[str] = None,
    settings: Optional[ProgressionSettings] = None,
    balance: Optional[BalanceConfig] = None,
) -> ActivityKind:
    """
    Validate a log-activity request and return the parsed kind.

    Raises:
        ValidationError: On the first failing rule.
    """
    try:
        parsed = ActivityKind.from_value(kind)
    except UnknownEnumValueError:
        raise ValidationError("activity_kind", f"unknown activity kind {kind!r}") from None

    validate_duration(duration_minutes, balance)

    if timestamp is not None:
        result = validate_timestamp(timestamp, now, balance)
        if not result.is_valid:
            raise ValidationError("timestamp", result.message or "timestamp is in the future")

    if notes is not None and len(notes) > MAX_ACTIVITY_NOTES_LENGTH:
        raise ValidationError(
            "notes", f"cannot exceed {MAX_ACTIVITY_NOTES_LENGTH} characters"
        )

    if settings is not None and not settings.is_enabled(parsed):
        raise ValidationError(
            "activity_kind", f"{parsed.display_name} is disabled in settings"
        )

    return parsed


def validate_activity_record(
    record: ActivityRecord,
    now: Optional[datetime] = None,
    balance: Optional[BalanceConfig] = None,
) -> List[str]:
    """
    Structural issues of a stored record; empty when the record is sound.

    The future-timestamp rule is only checked when `now` is given.
    """
    balance = balance or _DEFAULT_BALANCE
    issues: List[str] = []

    if not isinstance(record.id, str) or not record.id.strip():
        issues.append("activity id is empty")

    if not isinstance(record.kind, ActivityKind):
        issues.append(f"unknown activity kind {record.kind!r}")

    duration = record.duration_minutes
    if isinstance(duration, bool) or not isinstance(duration, int):
        issues.append(f"duration {duration!r} is not a whole number of minutes")
    elif duration <= 0:
        issues.append(f"duration {duration} must be greater than 0")
    elif duration > balance.max_duration_minutes:
        issues.append(f"duration {duration} exceeds {balance.max_duration_minutes} minutes")

    if not is_finite_number(record.exp_gained):
        issues.append(f"exp gained {record.exp_gained!r} is not finite")
    elif record.exp_gained < 0:
        issues.append(f"exp gained {record.exp_gained} is negative")

    for stat, amount in record.stat_gains.items():
        if not is_finite_number(amount):
            issues.append(f"{stat.value} gain {amount!r} is not finite")
        elif amount < 0:
            issues.append(f"{stat.value} gain {amount} is negative")

    if now is not None:
        result = validate_timestamp(record.timestamp, now, balance)
        if not result.is_valid and result.message:
            issues.append(result.message)

    return issues


def ensure_valid_activity_record(
    record: ActivityRecord,
    now: Optional[datetime] = None,
    balance: Optional[BalanceConfig] = None,
) -> None:
    """
    Raises:
        ValidationError: field "activity_record", listing every issue.
    """
    issues = validate_activity_record(record, now, balance)
    if issues:
        logger.warning(
            "Activity record failed validation",
            extra={"activity_id": record.id, "issues": issues},
        )
        raise ValidationError("activity_record", "; ".join(issues))


# ============================================================================
# EXP reversal
# ============================================================================


def validate_exp_reversal(
    profile: UserProfile,
    amount: float,
    balance: Optional[BalanceConfig] = None,
) -> bool:
    """
    Pre-check that `amount` EXP can be removed from `profile`.

    Amounts above `large_exp_reversal_warning` pass; they are logged since
    the level-down cascade will run to level 1 or the safety bound.
    """
    balance = balance or _DEFAULT_BALANCE
    if not is_finite_number(amount) or amount < 0:
        logger.warning("EXP reversal rejected: invalid amount", extra={"amount": amount})
        return False
    if profile.level < MIN_LEVEL:
        logger.warning("EXP reversal rejected: invalid level", extra={"level": profile.level})
        return False
    if not is_finite_number(profile.current_exp) or profile.current_exp < 0:
        logger.warning(
            "EXP reversal rejected: invalid current EXP",
            extra={"current_exp": profile.current_exp},
        )
        return False
    if amount > balance.large_exp_reversal_warning:
        logger.warning(
            "EXP reversal of very large amount",
            extra={"amount": amount, "level": profile.level},
        )
    return True
