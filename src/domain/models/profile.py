"""
UserProfile value type.

The single progression subject: level, EXP toward the next level, the six
stats, and per-activity last-activity timestamps used by decay.

`current_exp` is progress toward the *next* level, not lifetime EXP.
Stats have a floor of 1.0 and no ceiling; both are enforced by the stat
calculator, not here.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from src.domain.models.base import (
    LastActivityMap,
    StatMap,
    ensure_utc,
    format_datetime,
    last_activity_from_dict,
    last_activity_to_dict,
    parse_datetime,
    parse_optional_datetime,
    stat_map_from_dict,
    stat_map_to_dict,
)
from src.domain.models.enums import ActivityCategory, ActivityKind, StatKind

DEFAULT_STAT_VALUE = 1.0
DEFAULT_PROFILE_NAME = "Player"


def default_stats() -> Dict[StatKind, float]:
    return {kind: DEFAULT_STAT_VALUE for kind in StatKind}


@dataclass(frozen=True)
class UserProfile:
    """
    Immutable snapshot of a profile's progression state.

    Attributes
    ----------
    id : str
        Opaque profile identifier; every store call is keyed by it.
    name : str
        Display name.
    level : int
        Current level, >= 1 for valid data.
    current_exp : float
        EXP accumulated toward the next level.
    stats : Mapping[StatKind, float]
        Stat values, >= 1.0 for valid data.
    last_activity : Mapping[ActivityKind, datetime]
        Most recent logged timestamp per activity kind.
    created_at, last_active : datetime
        Bookkeeping timestamps (UTC).
    last_decay_at : Optional[datetime]
        When decay was last applied; gates decay to once per UTC day.
    has_completed_onboarding : bool
        Whether starting stat bonuses were applied.
    """

    id: str
    name: str
    level: int
    current_exp: float
    stats: StatMap
    created_at: datetime
    last_active: datetime
    last_activity: LastActivityMap = field(default_factory=dict)
    last_decay_at: Optional[datetime] = None
    has_completed_onboarding: bool = False

    @classmethod
    def create_default(
        cls,
        profile_id: str,
        name: str = DEFAULT_PROFILE_NAME,
        *,
        now: datetime,
    ) -> "UserProfile":
        """Level 1, 0 EXP, every stat at 1.0 and no activity history."""
        now = ensure_utc(now)
        return cls(
            id=profile_id,
            name=name,
            level=1,
            current_exp=0.0,
            stats=default_stats(),
            created_at=now,
            last_active=now,
        )

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def stat(self, kind: StatKind) -> float:
        return self.stats.get(kind, DEFAULT_STAT_VALUE)

    def last_activity_for(self, kind: ActivityKind) -> Optional[datetime]:
        return self.last_activity.get(kind)

    def last_activity_for_category(self, category: ActivityCategory) -> Optional[datetime]:
        """Most recent timestamp across all kinds in `category`."""
        stamps = [
            when for kind, when in self.last_activity.items() if kind.category is category
        ]
        return max(stamps) if stamps else None

    # ------------------------------------------------------------------ #
    # Transitions (each returns a new value)
    # ------------------------------------------------------------------ #

    def replace(self, **changes: Any) -> "UserProfile":
        return dataclasses.replace(self, **changes)

    def with_activity(self, kind: ActivityKind, when: datetime) -> "UserProfile":
        """Record `when` as the last activity of `kind` unless a later one exists."""
        when = ensure_utc(when)
        current = self.last_activity.get(kind)
        if current is not None and current >= when:
            return self
        updated: Dict[ActivityKind, datetime] = dict(self.last_activity)
        updated[kind] = when
        return self.replace(last_activity=updated)

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "current_exp": self.current_exp,
            "stats": stat_map_to_dict(self.stats),
            "last_activity": last_activity_to_dict(self.last_activity),
            "created_at": format_datetime(self.created_at),
            "last_active": format_datetime(self.last_active),
            "last_decay_at": format_datetime(self.last_decay_at),
            "has_completed_onboarding": self.has_completed_onboarding,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserProfile":
        """
        Build a profile from its `to_dict()` form.

        Raises
        ------
        UnknownEnumValueError
            If a stat or activity key is not a known member.
        KeyError, ValueError
            If a required field is missing or malformed.
        """
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or DEFAULT_PROFILE_NAME),
            level=int(data["level"]),
            current_exp=float(data["current_exp"]),
            stats=stat_map_from_dict(data.get("stats")),
            last_activity=last_activity_from_dict(data.get("last_activity")),
            created_at=parse_datetime(data["created_at"]),
            last_active=parse_datetime(data.get("last_active") or data["created_at"]),
            last_decay_at=parse_optional_datetime(data.get("last_decay_at")),
            has_completed_onboarding=bool(data.get("has_completed_onboarding", False)),
        )
