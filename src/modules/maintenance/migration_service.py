"""
One-time lazy migration of legacy activity records.

Records logged before stat gains were captured have an empty
`stat_gains`. Migration backfills them from the current gain table so
later reversals use stored values. Records that already carry gains are
never rewritten.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

from src.core.logging.logger import LogContext
from src.domain.models.activity import ActivityRecord
from src.modules.shared.base_service import BaseService
from src.modules.shared.record_store import RecordStore
from src.modules.shared.stat_calculator import compute_gains


@dataclass(frozen=True)
class MigrationStatus:
    total_activities: int
    migrated_activities: int
    legacy_activities: int

    @property
    def needs_migration(self) -> bool:
        return self.legacy_activities > 0


class ActivityMigrationService(BaseService):
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

    async def _all_records(self, profile_id: str) -> List[ActivityRecord]:
        return list(await self._store.list_activities(profile_id))

    async def needs_migration(self, profile_id: str) -> bool:
        return any(record.is_legacy for record in await self._all_records(profile_id))

    async def get_migration_status(self, profile_id: str) -> MigrationStatus:
        records = await self._all_records(profile_id)
        legacy = sum(1 for record in records if record.is_legacy)
        return MigrationStatus(
            total_activities=len(records),
            migrated_activities=len(records) - legacy,
            legacy_activities=legacy,
        )

    def migrate_record(self, record: ActivityRecord) -> ActivityRecord:
        """Record with backfilled gains; unchanged if it already has gains."""
        if not record.is_legacy:
            return record
        return record.with_stat_gains(
            compute_gains(record.kind, record.duration_minutes, self.balance)
        )

    async def migrate(self, profile_id: str) -> int:
        """
        Backfill every legacy record of the profile.

        Returns:
            Number of records rewritten

        Raises:
            PersistenceError: A record write failed; earlier writes stay migrated
        """
        async with LogContext(profile_id=profile_id, operation="activity_migration"):
            migrated = 0
            for record in await self._all_records(profile_id):
                if not record.is_legacy:
                    continue
                await self._store.put_activity(profile_id, self.migrate_record(record))
                migrated += 1

            if migrated:
                self.log.info("Legacy activities migrated", extra={"migrated": migrated})
                await self.emit_event(
                    "activity.migrated", {"profile_id": profile_id, "migrated": migrated}
                )
            return migrated
