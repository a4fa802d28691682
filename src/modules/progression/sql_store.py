"""
SQLAlchemy-backed record store.

Purpose
-------
Persist profiles, activity records and settings through
`DatabaseService.get_transaction()`: each store call is one transaction
that commits on success and rolls back on any exception.

Responsibilities
----------------
- Convert between ORM rows and immutable domain values
- Wrap SQLAlchemy/driver failures as `PersistenceError`
- Parse stored enum names strictly (`UnknownEnumValueError` propagates)

Non-Responsibilities
--------------------
- Progression rules or multi-call atomicity (the services compensate)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional, Sequence, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.service import DatabaseNotInitializedError, DatabaseService
from src.core.logging.logger import get_logger
from src.database.models.progression import (
    ActivityRecordRow,
    ProgressionProfile,
    ProgressionSettingsRow,
)
from src.domain.models.activity import ActivityRecord
from src.domain.models.base import (
    ensure_utc,
    last_activity_from_dict,
    last_activity_to_dict,
    stat_map_from_dict,
    stat_map_to_dict,
)
from src.domain.models.enums import ActivityKind
from src.domain.models.profile import UserProfile
from src.domain.models.settings import ProgressionSettings
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.exceptions import PersistenceError
from src.modules.shared.record_store import ActivityFilter

logger = get_logger(__name__)


# ============================================================================
# Row <-> domain conversion
# ============================================================================


def profile_from_row(row: ProgressionProfile) -> UserProfile:
    return UserProfile(
        id=row.id,
        name=row.name,
        level=row.level,
        current_exp=row.current_exp,
        stats=stat_map_from_dict(row.stats),
        last_activity=last_activity_from_dict(row.last_activity),
        created_at=ensure_utc(row.created_at),
        last_active=ensure_utc(row.last_active),
        last_decay_at=ensure_utc(row.last_decay_at) if row.last_decay_at else None,
        has_completed_onboarding=row.has_completed_onboarding,
    )


def _write_profile(row: ProgressionProfile, profile: UserProfile) -> None:
    row.name = profile.name
    row.level = profile.level
    row.current_exp = profile.current_exp
    row.stats = stat_map_to_dict(profile.stats)
    row.last_activity = last_activity_to_dict(profile.last_activity)
    row.created_at = profile.created_at
    row.last_active = profile.last_active
    row.last_decay_at = profile.last_decay_at
    row.has_completed_onboarding = profile.has_completed_onboarding


def activity_from_row(row: ActivityRecordRow) -> ActivityRecord:
    return ActivityRecord(
        id=row.id,
        kind=ActivityKind.from_value(row.kind),
        duration_minutes=row.duration_minutes,
        timestamp=ensure_utc(row.occurred_at),
        exp_gained=row.exp_gained,
        stat_gains=stat_map_from_dict(row.stat_gains),
        notes=row.notes,
    )


def _write_activity(row: ActivityRecordRow, profile_id: str, record: ActivityRecord) -> None:
    row.profile_id = profile_id
    row.kind = record.kind.value
    row.duration_minutes = record.duration_minutes
    row.occurred_at = record.timestamp
    row.exp_gained = record.exp_gained
    row.stat_gains = stat_map_to_dict(record.stat_gains)
    row.notes = record.notes


def settings_from_row(row: ProgressionSettingsRow) -> ProgressionSettings:
    return ProgressionSettings.from_dict(
        {
            "relaxed_weekend_mode": row.relaxed_weekend_mode,
            "degradation_warnings_enabled": row.degradation_warnings_enabled,
            "notifications_enabled": row.notifications_enabled,
            "enabled_activities": row.enabled_activities,
            "last_backup_at": row.last_backup_at,
        }
    )


def _write_settings(row: ProgressionSettingsRow, settings: ProgressionSettings) -> None:
    data = settings.to_dict()
    row.relaxed_weekend_mode = settings.relaxed_weekend_mode
    row.degradation_warnings_enabled = settings.degradation_warnings_enabled
    row.notifications_enabled = settings.notifications_enabled
    row.enabled_activities = data["enabled_activities"]
    row.last_backup_at = settings.last_backup_at


# ============================================================================
# Store
# ============================================================================


class SqlRecordStore:
    """
    RecordStore over the `progression_profiles`, `activity_records` and
    `progression_settings` tables.

    Args:
        database: Object exposing `get_transaction()`; `DatabaseService` by default
    """

    def __init__(self, database: Type[DatabaseService] = DatabaseService) -> None:
        self._database = database
        self._profiles = BaseRepository(ProgressionProfile, logger)
        self._activities = BaseRepository(ActivityRecordRow, logger)
        self._settings = BaseRepository(ProgressionSettingsRow, logger)

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._database.get_transaction() as session:
                yield session
        except (SQLAlchemyError, DatabaseNotInitializedError, OSError) as exc:
            logger.error(
                "Record store operation failed",
                extra={
                    "store_operation": operation,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise PersistenceError(operation, str(exc)) from exc

    # ------------------------------------------------------------------ #
    # Profiles
    # ------------------------------------------------------------------ #

    async def get_profile(self, profile_id: str) -> Optional[UserProfile]:
        async with self._transaction("get_profile") as session:
            row = await self._profiles.get(session, profile_id)
            return profile_from_row(row) if row is not None else None

    async def put_profile(self, profile: UserProfile) -> None:
        async with self._transaction("put_profile") as session:
            row = await self._profiles.get(session, profile.id)
            if row is None:
                row = ProgressionProfile(id=profile.id)
                _write_profile(row, profile)
                await self._profiles.add(session, row)
            else:
                _write_profile(row, profile)

    # ------------------------------------------------------------------ #
    # Activities
    # ------------------------------------------------------------------ #

    async def get_activity(self, profile_id: str, activity_id: str) -> Optional[ActivityRecord]:
        async with self._transaction("get_activity") as session:
            row = await self._activities.get(session, activity_id)
            if row is None or row.profile_id != profile_id:
                return None
            return activity_from_row(row)

    async def put_activity(self, profile_id: str, record: ActivityRecord) -> None:
        async with self._transaction("put_activity") as session:
            row = await self._activities.get(session, record.id)
            if row is None:
                row = ActivityRecordRow(id=record.id)
                _write_activity(row, profile_id, record)
                await self._activities.add(session, row)
            else:
                _write_activity(row, profile_id, record)

    async def delete_activity(self, profile_id: str, activity_id: str) -> bool:
        async with self._transaction("delete_activity") as session:
            removed = await self._activities.delete_where(
                session,
                ActivityRecordRow.id == activity_id,
                ActivityRecordRow.profile_id == profile_id,
            )
            return removed > 0

    async def list_activities(
        self, profile_id: str, activity_filter: Optional[ActivityFilter] = None
    ) -> Sequence[ActivityRecord]:
        activity_filter = activity_filter or ActivityFilter()
        conditions: list[Any] = [ActivityRecordRow.profile_id == profile_id]
        if activity_filter.kinds:
            conditions.append(
                ActivityRecordRow.kind.in_(sorted(kind.value for kind in activity_filter.kinds))
            )
        if activity_filter.since is not None:
            conditions.append(ActivityRecordRow.occurred_at >= activity_filter.since)
        if activity_filter.until is not None:
            conditions.append(ActivityRecordRow.occurred_at < activity_filter.until)

        if activity_filter.newest_first:
            order_by = [ActivityRecordRow.occurred_at.desc(), ActivityRecordRow.id.desc()]
        else:
            order_by = [ActivityRecordRow.occurred_at.asc(), ActivityRecordRow.id.asc()]

        async with self._transaction("list_activities") as session:
            rows = await self._activities.find_many_where(
                session, *conditions, order_by=order_by, limit=activity_filter.limit
            )
            return [activity_from_row(row) for row in rows]

    async def delete_all_activities(self, profile_id: str) -> int:
        async with self._transaction("delete_all_activities") as session:
            return await self._activities.delete_where(
                session, ActivityRecordRow.profile_id == profile_id
            )

    # ------------------------------------------------------------------ #
    # Settings
    # ------------------------------------------------------------------ #

    async def get_settings(self, profile_id: str) -> Optional[ProgressionSettings]:
        async with self._transaction("get_settings") as session:
            row = await self._settings.get(session, profile_id)
            return settings_from_row(row) if row is not None else None

    async def put_settings(self, profile_id: str, settings: ProgressionSettings) -> None:
        async with self._transaction("put_settings") as session:
            row = await self._settings.get(session, profile_id)
            if row is None:
                row = ProgressionSettingsRow(profile_id=profile_id)
                _write_settings(row, settings)
                await self._settings.add(session, row)
            else:
                _write_settings(row, settings)
