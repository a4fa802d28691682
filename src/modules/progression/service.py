"""
Progression Orchestrator.

Purpose
-------
Runs the two opposite progression transactions against a RecordStore:

- **log_activity**: validate -> compute gains and EXP -> apply -> persist
  profile, then record -> publish events
- **delete_activity**: look up -> snapshot -> validate -> compute reversal
  -> apply -> persist profile -> delete record, with a compensating write
  of the snapshot if the delete fails

Plus the read-only variants used for confirmation dialogs
(`preview_deletion`, `calculate_expected_gains`).

Design Notes
------------
Profiles are immutable values, so the rollback snapshot is simply the
profile as loaded. A transaction never hands a partially persisted profile
back to the caller; on failure the caller must reload.

The one partial-failure window is a failed record delete after the
reversed profile was written. The snapshot is written back for any
failure of that call, timeouts and cancellation included; if that write
fails too, `CriticalInconsistencyError` is raised so the caller can route
the user to a repair or restore flow instead of a retry.

Events are published only after every store call of the transaction
succeeded.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from src.core.logging.logger import LogContext
from src.domain.exceptions.registry import deletion_error_message as _deletion_error_message
from src.domain.models.activity import ActivityRecord
from src.domain.models.base import ensure_utc
from src.domain.models.enums import StatKind
from src.domain.models.profile import UserProfile
from src.domain.models.settings import ProgressionSettings
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    CriticalInconsistencyError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    is_store_failure,
)
from src.modules.shared.formulas import (
    LevelChange,
    apply_gain,
    apply_removal,
    compute_exp_gain,
)
from src.modules.shared.record_store import RecordStore
from src.modules.shared.stat_calculator import (
    apply_delta,
    compute_gains,
    compute_reversal,
    negate,
    validate_reversal,
)
from src.modules.shared.validators import (
    ensure_valid_activity_record,
    validate_activity_record,
    validate_exp_reversal,
    validate_log_input,
    validate_timestamp,
)


# ============================================================================
# Result types
# ============================================================================


@dataclass(frozen=True)
class ActivityLogResult:
    """Outcome of `log_activity`; the payload for level-up and gain toasts."""

    record: ActivityRecord
    profile: UserProfile
    gains: Dict[StatKind, float]
    exp_gain: float
    leveled_up: bool
    new_level: int
    levels_gained: int
    capped_at_safety_limit: bool = False


@dataclass(frozen=True)
class ActivityDeletionResult:
    """Outcome of `delete_activity`."""

    deleted_record: ActivityRecord
    profile: UserProfile
    stat_reversals: Dict[StatKind, float]
    exp_reversed: float
    new_level: int
    leveled_down: bool
    levels_lost: int
    exp_deficit_discarded: float = 0.0
    capped_at_safety_limit: bool = False


@dataclass(frozen=True)
class DeletionPreview:
    """
    What `delete_activity` would do, without persisting anything.

    When `is_valid` is False the numeric fields describe the unchanged
    profile and `validation_issues` says why deletion would be refused.
    """

    record: ActivityRecord
    stat_reversals: Dict[StatKind, float]
    exp_reversed: float
    new_level: int
    new_exp: float
    new_stats: Dict[StatKind, float]
    leveled_down: bool
    levels_lost: int
    exp_deficit_discarded: float = 0.0
    is_valid: bool = True
    validation_issues: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GainPreview:
    gains: Dict[StatKind, float]
    exp_gain: float
    would_level_up: bool
    projected_level: int


@dataclass(frozen=True)
class _ReversalPlan:
    profile: UserProfile
    reversal: Dict[StatKind, float]
    level_change: LevelChange


# ============================================================================
# Service
# ============================================================================


class ProgressionService(BaseService):
    """
    Applies and reverses activities for one profile at a time.

    Callers must not start a second transaction on the same profile before
    the first one's result (or error) has been observed; there is no
    locking here.

    Args:
        store: RecordStore implementation
        config: Application configuration
        event_bus: Bus for `activity.*` and `progression.*` events
        logger: Logger instance
        balance: Balance values (gain table, EXP curve, bounds)
        clock: Returns current UTC time
    """

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
    # Shared lookups
    # ------------------------------------------------------------------ #

    async def _require_profile(self, profile_id: str) -> UserProfile:
        profile = await self._store.get_profile(profile_id)
        if profile is None:
            raise NotFoundError("Profile", profile_id)
        return profile

    async def _settings_for(self, profile_id: str) -> ProgressionSettings:
        settings = await self._store.get_settings(profile_id)
        return settings or ProgressionSettings.default()

    # ======================================================================
    # LOG ACTIVITY
    # ======================================================================

    async def log_activity(
        self,
        profile_id: str,
        kind: Any,
        duration_minutes: int,
        *,
        timestamp: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> ActivityLogResult:
        """
        Log an activity and apply its stat gains and EXP.

        Args:
            profile_id: Profile to update
            kind: ActivityKind or its string value
            duration_minutes: Whole minutes in (0, 1440]
            timestamp: When the activity happened; now when omitted
            notes: Optional free text

        Returns:
            ActivityLogResult with the stored record and updated profile

        Raises:
            ValidationError: Bad kind, duration, timestamp, notes or disabled kind
            NotFoundError: Profile does not exist
            PersistenceError: A store write failed; nothing was changed
            CriticalInconsistencyError: Record write and profile restore both failed
        """
        async with LogContext(profile_id=profile_id, operation="log_activity"):
            now = self.now()
            settings = await self._settings_for(profile_id)
            try:
                activity_kind = validate_log_input(
                    kind,
                    duration_minutes,
                    now=now,
                    timestamp=timestamp,
                    notes=notes,
                    settings=settings,
                    balance=self.balance,
                )
            except ValidationError as exc:
                self.log.warning(
                    "Activity log rejected",
                    extra={"field": exc.field, "reason": exc.validation_message},
                )
                raise

            profile = await self._require_profile(profile_id)
            occurred_at = ensure_utc(timestamp) if timestamp is not None else now

            gains = compute_gains(activity_kind, duration_minutes, self.balance)
            exp_gain = compute_exp_gain(activity_kind, duration_minutes, self.balance)

            record = ActivityRecord(
                id=uuid.uuid4().hex,
                kind=activity_kind,
                duration_minutes=duration_minutes,
                timestamp=occurred_at,
                exp_gained=exp_gain,
                stat_gains=dict(gains),
                notes=notes,
            )

            change = apply_gain(profile.level, profile.current_exp, exp_gain, self.balance)
            updated = profile.replace(
                level=change.new_level,
                current_exp=change.new_exp,
                stats=apply_delta(profile.stats, gains, self.balance.stat_floor),
                last_active=now,
            ).with_activity(activity_kind, occurred_at)

            await self._store.put_profile(updated)
            try:
                await self._store.put_activity(profile_id, record)
            except BaseException as exc:
                await self._restore_profile(profile, "log_activity", exc)
                if isinstance(exc, PersistenceError) or not is_store_failure(exc):
                    raise
                raise PersistenceError(
                    "log_activity", f"failed to store activity record; profile restored: {exc!r}"
                ) from exc

            self.log.info(
                "Activity logged",
                extra={
                    "activity_id": record.id,
                    "activity_kind": activity_kind.value,
                    "duration_minutes": duration_minutes,
                    "exp_gain": exp_gain,
                    "new_level": change.new_level,
                    "levels_gained": change.levels_gained,
                },
            )

            await self.emit_event(
                "activity.logged",
                {
                    "profile_id": profile_id,
                    "activity_id": record.id,
                    "activity_kind": activity_kind.value,
                    "duration_minutes": duration_minutes,
                    "exp_gain": exp_gain,
                    "stat_gains": {stat.value: amount for stat, amount in gains.items()},
                },
            )
            if change.levels_gained > 0:
                await self.emit_event(
                    "progression.level_up",
                    {
                        "profile_id": profile_id,
                        "old_level": profile.level,
                        "new_level": change.new_level,
                        "levels_gained": change.levels_gained,
                    },
                )

            return ActivityLogResult(
                record=record,
                profile=updated,
                gains=dict(gains),
                exp_gain=exp_gain,
                leveled_up=change.levels_gained > 0,
                new_level=change.new_level,
                levels_gained=change.levels_gained,
                capped_at_safety_limit=change.capped_at_safety_limit,
            )

    # ======================================================================
    # DELETE ACTIVITY WITH REVERSAL
    # ======================================================================

    def _plan_reversal(
        self, profile: UserProfile, record: ActivityRecord, now: datetime
    ) -> _ReversalPlan:
        """
        Compute the reversed profile without touching storage.

        Raises:
            ValidationError: field "activity_record" for a corrupt record,
                "stat_reversal"/"exp_reversal" when the pre-checks fail,
                "timestamp" when the record is dated in the future
        """
        ensure_valid_activity_record(record, balance=self.balance)

        reversal = compute_reversal(
            record.kind, record.duration_minutes, record.stat_gains, self.balance
        )

        if not validate_reversal(profile.stats, reversal):
            raise ValidationError("stat_reversal", "stat reversal failed pre-validation")
        if not validate_exp_reversal(profile, record.exp_gained, self.balance):
            raise ValidationError("exp_reversal", "EXP reversal failed pre-validation")

        timestamp_check = validate_timestamp(record.timestamp, now, self.balance)
        if not timestamp_check.is_valid:
            raise ValidationError(
                "timestamp",
                f"activity is dated in the future, indicating a data inconsistency "
                f"({timestamp_check.message})",
            )

        new_stats = apply_delta(profile.stats, negate(reversal), self.balance.stat_floor)
        change = apply_removal(
            profile.level, profile.current_exp, record.exp_gained, self.balance
        )
        updated = profile.replace(
            level=change.new_level,
            current_exp=change.new_exp,
            stats=new_stats,
        )
        return _ReversalPlan(profile=updated, reversal=reversal, level_change=change)

    async def _load_for_deletion(
        self, profile_id: str, activity_id: str
    ) -> Tuple[ActivityRecord, UserProfile]:
        if not isinstance(activity_id, str) or not activity_id.strip():
            raise ValidationError("activity_id", "Invalid activity ID")

        record = await self._store.get_activity(profile_id, activity_id)
        if record is None:
            raise NotFoundError("Activity", activity_id)

        profile = await self._store.get_profile(profile_id)
        if profile is None:
            raise NotFoundError("Profile", profile_id)

        return record, profile

    async def delete_activity(self, profile_id: str, activity_id: str) -> ActivityDeletionResult:
        """
        Delete an activity and reverse everything it granted.

        Stat reversal is floor-clamped at 1.0 and EXP removal stops at
        level 1; reductions below those floors are discarded.

        Raises:
            ValidationError: Empty id, corrupt or future-dated record, failed pre-checks
            NotFoundError: Activity or profile does not exist
            PersistenceError: A store call failed and the profile was restored
            CriticalInconsistencyError: The record could not be deleted and
                the profile could not be restored
        """
        async with LogContext(profile_id=profile_id, operation="delete_activity"):
            record, snapshot = await self._load_for_deletion(profile_id, activity_id)

            try:
                plan = self._plan_reversal(snapshot, record, self.now())
            except ValidationError as exc:
                self.log.warning(
                    "Activity deletion rejected",
                    extra={
                        "activity_id": activity_id,
                        "field": exc.field,
                        "reason": exc.validation_message,
                    },
                )
                raise

            change = plan.level_change
            await self._store.put_profile(plan.profile)

            try:
                deleted = await self._store.delete_activity(profile_id, activity_id)
            except BaseException as exc:
                await self._restore_profile(snapshot, "delete_activity", exc)
                if not is_store_failure(exc):
                    raise
                raise PersistenceError(
                    "delete_activity",
                    "failed to delete activity after profile update; profile restored",
                ) from exc

            if not deleted:
                failure = PersistenceError(
                    "delete_activity", "activity disappeared before it could be deleted"
                )
                await self._restore_profile(snapshot, "delete_activity", failure)
                raise failure

            self.log.info(
                "Activity deleted with reversal",
                extra={
                    "activity_id": activity_id,
                    "activity_kind": record.kind.value,
                    "exp_reversed": record.exp_gained,
                    "old_level": snapshot.level,
                    "new_level": change.new_level,
                    "levels_lost": change.levels_lost,
                    "exp_deficit_discarded": change.exp_deficit_discarded,
                },
            )

            await self.emit_event(
                "activity.deleted",
                {
                    "profile_id": profile_id,
                    "activity_id": activity_id,
                    "activity_kind": record.kind.value,
                    "exp_reversed": record.exp_gained,
                    "stat_reversals": {
                        stat.value: amount for stat, amount in plan.reversal.items()
                    },
                },
            )
            if change.levels_lost > 0:
                await self.emit_event(
                    "progression.level_down",
                    {
                        "profile_id": profile_id,
                        "old_level": snapshot.level,
                        "new_level": change.new_level,
                        "levels_lost": change.levels_lost,
                    },
                )

            return ActivityDeletionResult(
                deleted_record=record,
                profile=plan.profile,
                stat_reversals=dict(plan.reversal),
                exp_reversed=record.exp_gained,
                new_level=change.new_level,
                leveled_down=change.new_level < snapshot.level,
                levels_lost=change.levels_lost,
                exp_deficit_discarded=change.exp_deficit_discarded,
                capped_at_safety_limit=change.capped_at_safety_limit,
            )

    async def _restore_profile(
        self, snapshot: UserProfile, operation: str, cause: BaseException
    ) -> None:
        """
        Write `snapshot` back after a failed second store call.

        Runs for any failure of that call, cancellation included.

        Raises:
            CriticalInconsistencyError: The compensating write failed too
        """
        self.log.error(
            "Store call failed after profile update, restoring snapshot",
            extra={"failed_operation": operation, "error": repr(cause)},
        )
        try:
            await self._store.put_profile(snapshot)
        except Exception as restore_exc:
            self.log.critical(
                "Profile restore failed, stored data is inconsistent",
                extra={
                    "failed_operation": operation,
                    "error": repr(cause),
                    "restore_error": repr(restore_exc),
                },
                exc_info=True,
            )
            raise CriticalInconsistencyError(
                operation,
                f"{cause!r}; restoring the profile also failed: {restore_exc!r}",
            ) from restore_exc

        self.log.info("Profile snapshot restored", extra={"failed_operation": operation})

    # ======================================================================
    # READ-ONLY PREVIEWS
    # ======================================================================

    async def preview_deletion(self, profile_id: str, activity_id: str) -> DeletionPreview:
        """
        Run the deletion computation without persisting.

        Validation failures are reported in the preview rather than raised.

        Raises:
            ValidationError: Empty activity id
            NotFoundError: Activity or profile does not exist
        """
        async with LogContext(profile_id=profile_id, operation="preview_deletion"):
            record, profile = await self._load_for_deletion(profile_id, activity_id)
            now = self.now()

            try:
                plan = self._plan_reversal(profile, record, now)
            except ValidationError as exc:
                issues = validate_activity_record(record, now, self.balance) or [
                    exc.validation_message
                ]
                return DeletionPreview(
                    record=record,
                    stat_reversals={},
                    exp_reversed=0.0,
                    new_level=profile.level,
                    new_exp=profile.current_exp,
                    new_stats=dict(profile.stats),
                    leveled_down=False,
                    levels_lost=0,
                    is_valid=False,
                    validation_issues=issues,
                )

            change = plan.level_change
            return DeletionPreview(
                record=record,
                stat_reversals=dict(plan.reversal),
                exp_reversed=record.exp_gained,
                new_level=change.new_level,
                new_exp=change.new_exp,
                new_stats=dict(plan.profile.stats),
                leveled_down=change.new_level < profile.level,
                levels_lost=change.levels_lost,
                exp_deficit_discarded=change.exp_deficit_discarded,
            )

    async def calculate_expected_gains(
        self, profile_id: str, kind: Any, duration_minutes: int
    ) -> GainPreview:
        """Gains, EXP and projected level for a hypothetical activity."""
        activity_kind = validate_log_input(
            kind, duration_minutes, now=self.now(), balance=self.balance
        )
        profile = await self._require_profile(profile_id)

        gains = compute_gains(activity_kind, duration_minutes, self.balance)
        exp_gain = compute_exp_gain(activity_kind, duration_minutes, self.balance)
        change = apply_gain(profile.level, profile.current_exp, exp_gain, self.balance)

        return GainPreview(
            gains=gains,
            exp_gain=exp_gain,
            would_level_up=change.levels_gained > 0,
            projected_level=change.new_level,
        )

    @staticmethod
    def deletion_error_message(exc: Exception) -> str:
        return _deletion_error_message(exc)
