"""
Dictionary-backed record store.

Used for single-process local use and by the unit tests. Values are
immutable, so they are stored and returned without copying.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

from src.core.logging.logger import get_logger
from src.domain.models.activity import ActivityRecord
from src.domain.models.profile import UserProfile
from src.domain.models.settings import ProgressionSettings
from src.modules.shared.record_store import ActivityFilter

logger = get_logger(__name__)


class InMemoryRecordStore:
    """RecordStore implementation holding everything in dictionaries."""

    def __init__(self) -> None:
        self._profiles: Dict[str, UserProfile] = {}
        self._activities: Dict[str, Dict[str, ActivityRecord]] = {}
        self._settings: Dict[str, ProgressionSettings] = {}

    async def get_profile(self, profile_id: str) -> Optional[UserProfile]:
        return self._profiles.get(profile_id)

    async def put_profile(self, profile: UserProfile) -> None:
        self._profiles[profile.id] = profile

    async def get_activity(self, profile_id: str, activity_id: str) -> Optional[ActivityRecord]:
        return self._activities.get(profile_id, {}).get(activity_id)

    async def put_activity(self, profile_id: str, record: ActivityRecord) -> None:
        self._activities.setdefault(profile_id, {})[record.id] = record

    async def delete_activity(self, profile_id: str, activity_id: str) -> bool:
        return self._activities.get(profile_id, {}).pop(activity_id, None) is not None

    async def list_activities(
        self, profile_id: str, activity_filter: Optional[ActivityFilter] = None
    ) -> Sequence[ActivityRecord]:
        records = self._activities.get(profile_id, {}).values()
        return (activity_filter or ActivityFilter()).apply(records)

    async def delete_all_activities(self, profile_id: str) -> int:
        removed = len(self._activities.pop(profile_id, {}))
        logger.debug(
            "In-memory activities cleared",
            extra={"profile_id": profile_id, "removed": removed},
        )
        return removed

    async def get_settings(self, profile_id: str) -> Optional[ProgressionSettings]:
        return self._settings.get(profile_id)

    async def put_settings(self, profile_id: str, settings: ProgressionSettings) -> None:
        self._settings[profile_id] = settings
