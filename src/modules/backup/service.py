"""
Backup serialization.

Purpose
-------
Turn a profile, its activity records and its settings into one flat JSON
document and back. Export followed by import is lossless for every value
that passes export validation.

Responsibilities
----------------
- Refuse to export values that cannot round-trip (NaN, Infinity, stats
  beyond the export limit) instead of truncating them
- Validate imported documents before anything is written, rejecting NaN
  and Infinity the same way export does
- Snapshot the data an import replaces and restore it if a write fails
- Refuse to replace an existing profile unless `overwrite=True`

Non-Responsibilities
--------------------
- Backup files, directories, rotation and sharing
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from src.core.logging.logger import LogContext
from src.domain.models.activity import ActivityRecord
from src.domain.models.base import format_datetime, parse_datetime
from src.domain.models.profile import UserProfile
from src.domain.models.settings import ProgressionSettings
from src.modules.shared.balance import BalanceConfig
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import BACKUP_FORMAT_VERSION, MIN_LEVEL
from src.modules.shared.exceptions import (
    BackupError,
    CriticalInconsistencyError,
    PersistenceError,
    UnknownEnumValueError,
    is_store_failure,
)
from src.modules.shared.record_store import ActivityFilter, RecordStore
from src.modules.shared.validators import (
    is_finite_number,
    validate_activity_record,
    validate_stat_map,
)


@dataclass(frozen=True)
class BackupDocument:
    """Everything needed to restore one profile."""

    version: str
    exported_at: datetime
    profile: UserProfile
    activities: List[ActivityRecord] = field(default_factory=list)
    settings: ProgressionSettings = field(default_factory=ProgressionSettings.default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "exported_at": format_datetime(self.exported_at),
            "profile": self.profile.to_dict(),
            "activities": [record.to_dict() for record in self.activities],
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BackupDocument":
        """
        Raises:
            BackupError: Missing version or profile id, or malformed fields
            UnknownEnumValueError: Unknown activity or stat name
        """
        version = data.get("version")
        if not version:
            raise BackupError("Invalid backup: missing version")

        raw_profile = data.get("profile")
        if not isinstance(raw_profile, Mapping) or not raw_profile.get("id"):
            raise BackupError("Invalid backup: missing user ID")

        try:
            return cls(
                version=str(version),
                exported_at=parse_datetime(data["exported_at"]),
                profile=UserProfile.from_dict(raw_profile),
                activities=[ActivityRecord.from_dict(raw) for raw in data.get("activities") or []],
                settings=ProgressionSettings.from_dict(data.get("settings")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise BackupError(f"Invalid backup: malformed data ({exc})") from exc


@dataclass(frozen=True)
class _ImportSnapshot:
    profile: Optional[UserProfile]
    activities: List[ActivityRecord]
    settings: Optional[ProgressionSettings]


def _reject_constant(name: str) -> Any:
    raise BackupError(f"Invalid backup: non-finite number {name}")


def _check_importable(document: BackupDocument, balance: Optional[BalanceConfig] = None) -> None:
    profile = document.profile
    if any(is_finite_number(value) and value < 0 for value in profile.stats.values()):
        raise BackupError("Invalid backup: negative stat values")
    stats_check = validate_stat_map(profile.stats, balance=balance)
    if not stats_check.is_valid:
        raise BackupError(f"Invalid backup: {stats_check.message}")
    if not is_finite_number(profile.current_exp) or profile.current_exp < 0:
        raise BackupError("Invalid backup: EXP must be a finite, non-negative number")
    if profile.level < MIN_LEVEL:
        raise BackupError(f"Invalid backup: level {profile.level} is below {MIN_LEVEL}")

    for record in document.activities:
        if isinstance(record.duration_minutes, int) and record.duration_minutes < 0:
            raise BackupError("Invalid backup: negative activity duration")
        if is_finite_number(record.exp_gained) and record.exp_gained < 0:
            raise BackupError("Invalid backup: negative EXP gained")
        issues = validate_activity_record(record, balance=balance)
        if issues:
            raise BackupError(f"Invalid backup: activity {record.id}: {'; '.join(issues)}")


class BackupService(BaseService):
    """Export and import of complete profile data."""

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

    # ------------------------------------------------------------------ #
    # Export
    # ------------------------------------------------------------------ #

    def _check_exportable(self, profile: UserProfile, activities: List[ActivityRecord]) -> None:
        stats_check = validate_stat_map(profile.stats, for_export=True, balance=self.balance)
        if not stats_check.is_valid:
            raise BackupError(f"Profile cannot be exported: {stats_check.message}")
        if not is_finite_number(profile.current_exp):
            raise BackupError("Profile cannot be exported: EXP is not finite")

        for record in activities:
            values = [record.exp_gained, *record.stat_gains.values()]
            if not all(is_finite_number(value) for value in values):
                raise BackupError(
                    f"Activity {record.id} cannot be exported: non-finite value"
                )
            if any(value > self.balance.export_stat_limit for value in values):
                raise BackupError(
                    f"Activity {record.id} cannot be exported: value exceeds export limit"
                )

    async def export_data(self, profile_id: str) -> BackupDocument:
        """
        Raises:
            BackupError: No profile, or a value would not survive export
        """
        async with LogContext(profile_id=profile_id, operation="backup_export"):
            profile = await self._store.get_profile(profile_id)
            if profile is None:
                raise BackupError("No user data found to export")

            activities = list(
                await self._store.list_activities(
                    profile_id, ActivityFilter(newest_first=False)
                )
            )
            settings = await self._store.get_settings(profile_id) or ProgressionSettings.default()

            self._check_exportable(profile, activities)

            self.log.info("Backup exported", extra={"activity_count": len(activities)})
            return BackupDocument(
                version=BACKUP_FORMAT_VERSION,
                exported_at=self.now(),
                profile=profile,
                activities=activities,
                settings=settings,
            )

    @staticmethod
    def to_json(document: BackupDocument, indent: Optional[int] = 2) -> str:
        try:
            return json.dumps(document.to_dict(), indent=indent, allow_nan=False)
        except ValueError as exc:
            raise BackupError(f"Backup contains values that cannot be serialized: {exc}") from exc

    async def export_to_json(self, profile_id: str) -> str:
        return self.to_json(await self.export_data(profile_id))

    # ------------------------------------------------------------------ #
    # Import
    # ------------------------------------------------------------------ #

    @staticmethod
    def parse_json(json_data: str, balance: Optional[BalanceConfig] = None) -> BackupDocument:
        """
        Parse and validate a backup document without writing anything.

        Raises:
            BackupError: Malformed JSON, NaN or Infinity literals, missing
                fields, unknown enum values, or values the validation
                layer rejects
        """
        try:
            data = json.loads(json_data, parse_constant=_reject_constant)
        except json.JSONDecodeError as exc:
            raise BackupError(f"Invalid backup: not valid JSON ({exc.msg})") from exc
        if not isinstance(data, Mapping):
            raise BackupError("Invalid backup: expected a JSON object")

        try:
            document = BackupDocument.from_dict(data)
        except UnknownEnumValueError as exc:
            raise BackupError(f"Invalid backup: {exc.message}") from exc

        _check_importable(document, balance)
        return document

    async def _write_document(self, document: BackupDocument, clear_existing: bool) -> None:
        profile_id = document.profile.id
        if clear_existing:
            removed = await self._store.delete_all_activities(profile_id)
            self.log.info("Existing activities cleared for import", extra={"removed": removed})
        await self._store.put_profile(document.profile)
        for record in document.activities:
            await self._store.put_activity(profile_id, record)
        await self._store.put_settings(profile_id, document.settings)

    async def _restore(self, profile_id: str, snapshot: _ImportSnapshot) -> None:
        # Without a previous profile only the imported activities can be removed
        await self._store.delete_all_activities(profile_id)
        if snapshot.profile is None:
            return
        await self._store.put_profile(snapshot.profile)
        for record in snapshot.activities:
            await self._store.put_activity(profile_id, record)
        await self._store.put_settings(
            profile_id, snapshot.settings or ProgressionSettings.default()
        )

    async def import_from_json(self, json_data: str, overwrite: bool = False) -> BackupDocument:
        """
        Restore a profile from a backup document.

        With `overwrite=True` the existing activities of that profile are
        removed first so the store ends up matching the document exactly.
        The previous profile, activities and settings are snapshotted before
        the first write and restored if any write fails.

        Raises:
            BackupError: Invalid document, or profile exists without overwrite
            PersistenceError: A store write failed and the previous data was restored
            CriticalInconsistencyError: A store write failed and restoring failed too
        """
        document = self.parse_json(json_data, self.balance)
        profile_id = document.profile.id

        async with LogContext(profile_id=profile_id, operation="backup_import"):
            existing = await self._store.get_profile(profile_id)
            if existing is not None and not overwrite:
                raise BackupError("User data already exists. Use overwrite option to replace.")

            snapshot = _ImportSnapshot(profile=existing, activities=[], settings=None)
            if existing is not None:
                snapshot = _ImportSnapshot(
                    profile=existing,
                    activities=list(await self._store.list_activities(profile_id)),
                    settings=await self._store.get_settings(profile_id),
                )

            try:
                await self._write_document(document, clear_existing=existing is not None)
            except BaseException as exc:
                self.log.error(
                    "Backup import failed, restoring previous data",
                    extra={"error": repr(exc)},
                    exc_info=True,
                )
                try:
                    await self._restore(profile_id, snapshot)
                except Exception as restore_exc:
                    self.log.critical(
                        "Import rollback failed, stored data is inconsistent",
                        extra={"error": repr(exc), "restore_error": repr(restore_exc)},
                    )
                    raise CriticalInconsistencyError(
                        "backup_import",
                        f"{exc!r}; restoring previous data also failed: {restore_exc!r}",
                    ) from restore_exc
                if not is_store_failure(exc):
                    raise
                raise PersistenceError(
                    "backup_import", f"import failed and previous data was restored: {exc!r}"
                ) from exc

            self.log.info(
                "Backup imported",
                extra={
                    "activity_count": len(document.activities),
                    "overwrite": overwrite,
                    "backup_version": document.version,
                },
            )
            await self.emit_event(
                "backup.imported",
                {
                    "profile_id": profile_id,
                    "activity_count": len(document.activities),
                    "overwrite": overwrite,
                },
            )
            return document
