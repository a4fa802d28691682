"""
Per-profile progression settings.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Mapping, Optional

from src.domain.models.base import format_datetime, parse_optional_datetime
from src.domain.models.enums import ActivityKind


def _all_activities() -> FrozenSet[ActivityKind]:
    return frozenset(ActivityKind)


@dataclass(frozen=True)
class ProgressionSettings:
    """
    Attributes
    ----------
    relaxed_weekend_mode : bool
        Count only weekdays when measuring inactivity for decay.
    degradation_warnings_enabled : bool
        Whether decay warnings are produced.
    notifications_enabled : bool
        Whether presentation layers may notify on events.
    enabled_activities : FrozenSet[ActivityKind]
        Kinds the profile may log.
    last_backup_at : Optional[datetime]
        Time of the last successful export.
    """

    relaxed_weekend_mode: bool = False
    degradation_warnings_enabled: bool = True
    notifications_enabled: bool = True
    enabled_activities: FrozenSet[ActivityKind] = field(default_factory=_all_activities)
    last_backup_at: Optional[datetime] = None

    @classmethod
    def default(cls) -> "ProgressionSettings":
        return cls()

    def is_enabled(self, kind: ActivityKind) -> bool:
        return kind in self.enabled_activities

    def replace(self, **changes: Any) -> "ProgressionSettings":
        if "enabled_activities" in changes:
            changes["enabled_activities"] = frozenset(
                ActivityKind.from_value(kind) for kind in changes["enabled_activities"]
            )
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relaxed_weekend_mode": self.relaxed_weekend_mode,
            "degradation_warnings_enabled": self.degradation_warnings_enabled,
            "notifications_enabled": self.notifications_enabled,
            # Declaration order keeps documents stable across runs
            "enabled_activities": [
                kind.value for kind in ActivityKind if kind in self.enabled_activities
            ],
            "last_backup_at": format_datetime(self.last_backup_at),
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ProgressionSettings":
        if not data:
            return cls()
        enabled = data.get("enabled_activities")
        return cls(
            relaxed_weekend_mode=bool(data.get("relaxed_weekend_mode", False)),
            degradation_warnings_enabled=bool(data.get("degradation_warnings_enabled", True)),
            notifications_enabled=bool(data.get("notifications_enabled", True)),
            enabled_activities=(
                _all_activities()
                if enabled is None
                else frozenset(ActivityKind.from_value(kind) for kind in enabled)
            ),
            last_backup_at=parse_optional_datetime(data.get("last_backup_at")),
        )
