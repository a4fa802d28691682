"""
Full progression reset.

Clears a profile's history and returns it to the default state (level 1,
0 EXP, every stat at 1.0, default settings), keeping its id and name.
A snapshot of profile, activities and settings is taken first; any
failure restores it. A failed restore escalates to
`CriticalInconsistencyError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from src.core.logging.logger import LogContext
from src.domain.models.activity import ActivityRecord
from src.domain.models.profile import UserProfile
from src.domain.models.settings import ProgressionSettings
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    CriticalInconsistencyError,
    NotFoundError,
    PersistenceError,
    is_store_failure,
)
from src.modules.shared.record_store import RecordStore


@dataclass(frozen=True)
class ResetResult:
    cleared_activities: int
    profile: UserProfile


@dataclass(frozen=True)
class _ResetSnapshot:
    profile: UserProfile
    activities: List[ActivityRecord]
    settings: Optional[ProgressionSettings]


class DataResetService(BaseService):
    def __init__(
        self,
        store: RecordStore,
        config: Any,
        event_bus: Any,
        logger: Any,
        *,
        clock=None,
    ) -> None:
        super().__init__(config, event_bus, logger, clock=clock)
        self._store = store

    async def _verify_reset(self, profile_id: str, expected: UserProfile) -> None:
        profile = await self._store.get_profile(profile_id)
        if profile != expected:
            raise PersistenceError("reset_all", "profile was not reset to defaults")
        if await self._store.list_activities(profile_id):
            raise PersistenceError("reset_all", "activity data was not cleared")
        if await self._store.get_settings(profile_id) != ProgressionSettings.default():
            raise PersistenceError("reset_all", "settings were not reset")

    async def _restore(self, profile_id: str, snapshot: _ResetSnapshot) -> None:
        await self._store.delete_all_activities(profile_id)
        await self._store.put_profile(snapshot.profile)
        for record in snapshot.activities:
            await self._store.put_activity(profile_id, record)
        await self._store.put_settings(
            profile_id, snapshot.settings or ProgressionSettings.default()
        )

    async def reset_all(self, profile_id: str) -> ResetResult:
        """
        Raises:
            NotFoundError: Profile does not exist
            PersistenceError: Reset failed and the previous data was restored
            CriticalInconsistencyError: Reset failed and restoring failed too
        """
        async with LogContext(profile_id=profile_id, operation="reset_all"):
            profile = await self._store.get_profile(profile_id)
            if profile is None:
                raise NotFoundError("Profile", profile_id)

            snapshot = _ResetSnapshot(
                profile=profile,
                activities=list(await self._store.list_activities(profile_id)),
                settings=await self._store.get_settings(profile_id),
            )
            fresh = UserProfile.create_default(profile.id, profile.name, now=self.now())

            try:
                cleared = await self._store.delete_all_activities(profile_id)
                await self._store.put_profile(fresh)
                await self._store.put_settings(profile_id, ProgressionSettings.default())
                await self._verify_reset(profile_id, fresh)
            except BaseException as exc:
                self.log.error(
                    "Reset failed, restoring previous data",
                    extra={"error": repr(exc)},
                    exc_info=True,
                )
                try:
                    await self._restore(profile_id, snapshot)
                except Exception as restore_exc:
                    self.log.critical(
                        "Reset rollback failed, stored data is inconsistent",
                        extra={"error": repr(exc), "restore_error": repr(restore_exc)},
                    )
                    raise CriticalInconsistencyError(
                        "reset_all",
                        f"{exc!r}; restoring previous data also failed: {restore_exc!r}",
                    ) from restore_exc
                if not is_store_failure(exc):
                    raise
                reason = exc.message if isinstance(exc, PersistenceError) else repr(exc)
                raise PersistenceError(
                    "reset_all", f"reset failed and previous data was restored: {reason}"
                ) from exc

            self.log.info("Progression data reset", extra={"cleared_activities": cleared})
            await self.emit_event(
                "profile.reset", {"profile_id": profile_id, "cleared_activities": cleared}
            )
            return ResetResult(cleared_activities=cleared, profile=fresh)
