"""
Shared building blocks for the progression value types.

Purpose
-------
The domain values (`UserProfile`, `ActivityRecord`, `ProgressionSettings`)
are frozen dataclasses. Every transaction step produces a new value with
`dataclasses.replace` instead of mutating in place, so a rollback snapshot
is simply the previous value.

This module holds the pieces they share:
- `StatMap` / `LastActivityMap` type aliases
- timezone normalization for timestamps
- mapping conversions between enum-keyed dicts and their plain
  string-keyed form used by storage and backup documents

Non-Responsibilities
--------------------
- Validation of business rules (handled by src.modules.shared.validators).
  Values are allowed to hold corrupt data so the integrity checker can
  load and report it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from src.domain.models.enums import ActivityKind, StatKind

StatMap = Mapping[StatKind, float]
LastActivityMap = Mapping[ActivityKind, datetime]


def ensure_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"Expected ISO-8601 timestamp string, got {type(value).__name__}")
    return ensure_utc(datetime.fromisoformat(value))


def parse_optional_datetime(value: Any) -> Optional[datetime]:
    return None if value is None else parse_datetime(value)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else ensure_utc(value).isoformat()


def stat_map_to_dict(stats: StatMap) -> Dict[str, float]:
    return {kind.value: float(amount) for kind, amount in stats.items()}


def stat_map_from_dict(data: Optional[Mapping[str, Any]]) -> Dict[StatKind, float]:
    """Parse a stored stat mapping; unknown stat names raise UnknownEnumValueError."""
    if not data:
        return {}
    return {StatKind.from_value(key): float(amount) for key, amount in data.items()}


def last_activity_to_dict(values: LastActivityMap) -> Dict[str, str]:
    return {kind.value: ensure_utc(when).isoformat() for kind, when in values.items()}


def last_activity_from_dict(data: Optional[Mapping[str, Any]]) -> Dict[ActivityKind, datetime]:
    if not data:
        return {}
    return {ActivityKind.from_value(key): parse_datetime(when) for key, when in data.items()}
