"""
Activity history queries.

Read-only views over a profile's activity records: date-ranged history,
today/this-week shortcuts, per-kind aggregates and day streaks. Day and
week boundaries are UTC; weeks start on Monday.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from src.domain.models.activity import ActivityRecord
from src.domain.models.base import ensure_utc
from src.domain.models.enums import ActivityKind, StatKind
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import DEFAULT_RECENT_LIMIT, MAX_STREAK_DAYS
from src.modules.shared.record_store import ActivityFilter, RecordStore
from src.modules.shared.stat_calculator import max_gain_stat, stat_totals


@dataclass(frozen=True)
class ActivityStats:
    kind: ActivityKind
    total_sessions: int
    total_minutes: int
    total_exp: float
    stat_gains: Dict[StatKind, float] = field(default_factory=dict)
    top_stat: Optional[StatKind] = None

    @property
    def average_minutes(self) -> float:
        if self.total_sessions == 0:
            return 0.0
        return self.total_minutes / self.total_sessions


def start_of_day(when: datetime) -> datetime:
    when = ensure_utc(when)
    return when.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(when: datetime) -> datetime:
    day = start_of_day(when)
    return day - timedelta(days=day.weekday())


class ActivityHistoryService(BaseService):
    """History and aggregate queries for one profile's activities."""

    def __init__(
        self,
        store: RecordStore,
        config: Any,
        event_bus: Any,
        logger: Any,
        *,
        balance=None,
        clock=None,
    ) -> None:
        super().__init__(config, event_bus, logger, balance=balance, clock=clock)
        self._store = store

    async def get_history(
        self,
        profile_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        kind: Optional[ActivityKind] = None,
        limit: Optional[int] = None,
    ) -> Sequence[ActivityRecord]:
        """
        Records newest first.

        Args:
            start: Inclusive lower bound
            end: Exclusive upper bound
            kind: Only this kind when given
            limit: Maximum number of records
        """
        activity_filter = ActivityFilter(
            kinds=frozenset([ActivityKind.from_value(kind)]) if kind is not None else frozenset(),
            since=ensure_utc(start) if start is not None else None,
            until=ensure_utc(end) if end is not None else None,
            limit=limit,
        )
        return await self._store.list_activities(profile_id, activity_filter)

    async def get_today(
        self, profile_id: str, now: Optional[datetime] = None
    ) -> Sequence[ActivityRecord]:
        day = start_of_day(now or self.now())
        return await self.get_history(profile_id, start=day, end=day + timedelta(days=1))

    async def get_this_week(
        self, profile_id: str, now: Optional[datetime] = None
    ) -> Sequence[ActivityRecord]:
        week = start_of_week(now or self.now())
        return await self.get_history(profile_id, start=week, end=week + timedelta(days=7))

    async def get_recent(
        self, profile_id: str, limit: int = DEFAULT_RECENT_LIMIT
    ) -> Sequence[ActivityRecord]:
        return await self.get_history(profile_id, limit=limit)

    async def get_activity_stats(
        self,
        profile_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[ActivityKind, ActivityStats]:
        """
        Sessions, minutes, EXP and stat gains per kind; kinds with no records
        are omitted. Records without captured gains count their gains from
        the current rate table.
        """
        records = await self.get_history(profile_id, start=start, end=end)

        by_kind: Dict[ActivityKind, List[ActivityRecord]] = {}
        for record in records:
            by_kind.setdefault(record.kind, []).append(record)

        result: Dict[ActivityKind, ActivityStats] = {}
        for kind in ActivityKind:
            kind_records = by_kind.get(kind)
            if not kind_records:
                continue
            totals = {
                stat: amount
                for stat, amount in stat_totals(kind_records, self.balance).items()
                if amount > 0
            }
            result[kind] = ActivityStats(
                kind=kind,
                total_sessions=len(kind_records),
                total_minutes=sum(record.duration_minutes for record in kind_records),
                total_exp=sum(record.exp_gained for record in kind_records),
                stat_gains=totals,
                top_stat=max_gain_stat(totals),
            )
        return result

    async def get_streak(
        self, profile_id: str, kind: ActivityKind, now: Optional[datetime] = None
    ) -> int:
        """
        Consecutive days, ending today, with at least one record of `kind`.

        A day without a record today means a streak of 0.
        """
        today = start_of_day(now or self.now())
        records = await self.get_history(
            profile_id,
            start=today - timedelta(days=MAX_STREAK_DAYS - 1),
            end=today + timedelta(days=1),
            kind=kind,
        )
        active_days = {ensure_utc(record.timestamp).date() for record in records}

        streak = 0
        for offset in range(MAX_STREAK_DAYS):
            if (today - timedelta(days=offset)).date() not in active_days:
                break
            streak += 1
        return streak

    async def get_last_activity_date(
        self, profile_id: str, kind: ActivityKind
    ) -> Optional[datetime]:
        records: List[ActivityRecord] = list(
            await self.get_history(profile_id, kind=kind, limit=1)
        )
        return records[0].timestamp if records else None
