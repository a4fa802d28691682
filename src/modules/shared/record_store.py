"""
Record Store contract.

The progression services read and write profiles, activity records and
settings only through this protocol. Every call is keyed by `profile_id`.

Failure contract
----------------
Implementations raise `PersistenceError` when the underlying storage call
fails. "Not found" is not an error at this level: getters return None and
`delete_activity` returns False.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from src.domain.models.activity import ActivityRecord
from src.domain.models.base import ensure_utc
from src.domain.models.enums import ActivityKind
from src.domain.models.profile import UserProfile
from src.domain.models.settings import ProgressionSettings


@dataclass(frozen=True)
class ActivityFilter:
    """
    Selection for `list_activities`.

    `since` is inclusive and `until` exclusive. An empty `kinds` set means
    every kind.
    """

    kinds: FrozenSet[ActivityKind] = field(default_factory=frozenset)
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    limit: Optional[int] = None
    newest_first: bool = True

    @classmethod
    def for_kinds(cls, kinds: Iterable[ActivityKind], **kwargs) -> "ActivityFilter":
        return cls(kinds=frozenset(kinds), **kwargs)

    def matches(self, record: ActivityRecord) -> bool:
        if self.kinds and record.kind not in self.kinds:
            return False
        timestamp = ensure_utc(record.timestamp)
        if self.since is not None and timestamp < ensure_utc(self.since):
            return False
        if self.until is not None and timestamp >= ensure_utc(self.until):
            return False
        return True

    def apply(self, records: Iterable[ActivityRecord]) -> List[ActivityRecord]:
        """Filter, order by timestamp (id as tie-breaker) and limit."""
        selected = [record for record in records if self.matches(record)]
        selected.sort(
            key=lambda record: (ensure_utc(record.timestamp), record.id),
            reverse=self.newest_first,
        )
        if self.limit is not None:
            selected = selected[: max(self.limit, 0)]
        return selected


@runtime_checkable
class RecordStore(Protocol):
    """Persistence contract consumed by the progression services."""

    async def get_profile(self, profile_id: str) -> Optional[UserProfile]: ...

    async def put_profile(self, profile: UserProfile) -> None: ...

    async def get_activity(self, profile_id: str, activity_id: str) -> Optional[ActivityRecord]: ...

    async def put_activity(self, profile_id: str, record: ActivityRecord) -> None: ...

    async def delete_activity(self, profile_id: str, activity_id: str) -> bool: ...

    async def list_activities(
        self, profile_id: str, activity_filter: Optional[ActivityFilter] = None
    ) -> Sequence[ActivityRecord]: ...

    async def delete_all_activities(self, profile_id: str) -> int: ...

    async def get_settings(self, profile_id: str) -> Optional[ProgressionSettings]: ...

    async def put_settings(self, profile_id: str, settings: ProgressionSettings) -> None: ...
