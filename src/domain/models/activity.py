"""
ActivityRecord value type.

`exp_gained` and `stat_gains` are captured when the activity is logged and
are the authoritative amounts for a later reversal. An empty `stat_gains`
marks a legacy record created before gains were captured.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from src.domain.models.base import (
    StatMap,
    format_datetime,
    parse_datetime,
    stat_map_from_dict,
    stat_map_to_dict,
)
from src.domain.models.enums import ActivityCategory, ActivityKind


@dataclass(frozen=True)
class ActivityRecord:
    """One logged occurrence of an activity."""

    id: str
    kind: ActivityKind
    duration_minutes: int
    timestamp: datetime
    exp_gained: float
    stat_gains: StatMap = field(default_factory=dict)
    notes: Optional[str] = None

    @property
    def category(self) -> ActivityCategory:
        return self.kind.category

    @property
    def is_legacy(self) -> bool:
        return not self.stat_gains

    def with_stat_gains(self, gains: StatMap) -> "ActivityRecord":
        return dataclasses.replace(self, stat_gains=dict(gains))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "duration_minutes": self.duration_minutes,
            "timestamp": format_datetime(self.timestamp),
            "exp_gained": self.exp_gained,
            "stat_gains": stat_map_to_dict(self.stat_gains),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ActivityRecord":
        """
        Raises
        ------
        UnknownEnumValueError
            If `kind` or a stat key is not a known member.
        """
        return cls(
            id=str(data["id"]),
            kind=ActivityKind.from_value(data["kind"]),
            duration_minutes=int(data["duration_minutes"]),
            timestamp=parse_datetime(data["timestamp"]),
            exp_gained=float(data["exp_gained"]),
            stat_gains=stat_map_from_dict(data.get("stat_gains")),
            notes=data.get("notes"),
        )
