"""
Decay Orchestrator.

Purpose
-------
Applies inactivity decay to a profile's stats and produces the warnings
shown before and during decay.

Rules
-----
- Only WORKOUT and STUDY decay; OTHER is exempt
- Below the threshold (3 days) nothing happens
- Each full threshold period costs `decay_per_period`, capped at
  `max_decay_per_check` per application
- Relaxed weekend mode counts weekdays only
- Stats go through the same floor-clamped `apply_delta` as gains, so decay
  never takes a stat below 1.0
- Decay is applied at most once per UTC calendar day (`last_decay_at`)

Events
------
- `decay.applied` after the decayed profile was persisted
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from src.core.logging.logger import LogContext
from src.domain.models.base import ensure_utc
from src.domain.models.enums import ActivityCategory, StatKind
from src.domain.models.profile import UserProfile
from src.domain.models.settings import ProgressionSettings
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import DECAY_CRITICAL_EXTRA_DAYS, DECAY_HIGH_EXTRA_DAYS
from src.modules.shared.exceptions import NotFoundError
from src.modules.shared.record_store import RecordStore
from src.modules.shared.stat_calculator import apply_decay, compute_decay, days_inactive


class DecaySeverity(str, Enum):
    LOW = "low"  # decay starts tomorrow
    MEDIUM = "medium"  # decay just started
    HIGH = "high"
    CRITICAL = "critical"  # long-term neglect


@dataclass(frozen=True)
class DecayWarning:
    """One category that is about to decay or already decaying."""

    category: ActivityCategory
    days_since: int
    affected_stats: Tuple[StatKind, ...]
    is_active: bool
    severity: DecaySeverity
    message: str

    @classmethod
    def build(
        cls,
        category: ActivityCategory,
        days_since: int,
        affected_stats: Tuple[StatKind, ...],
        threshold_days: int,
    ) -> "DecayWarning":
        is_active = days_since >= threshold_days

        if days_since >= threshold_days + DECAY_CRITICAL_EXTRA_DAYS:
            severity = DecaySeverity.CRITICAL
        elif days_since >= threshold_days + DECAY_HIGH_EXTRA_DAYS:
            severity = DecaySeverity.HIGH
        elif is_active:
            severity = DecaySeverity.MEDIUM
        else:
            severity = DecaySeverity.LOW

        if is_active:
            message = (
                f"{category.display_name}: {days_since} days without activity - "
                "stats degrading!"
            )
        else:
            message = (
                f"{category.display_name}: {days_since} days without activity - "
                "degradation starts tomorrow!"
            )

        return cls(
            category=category,
            days_since=days_since,
            affected_stats=tuple(affected_stats),
            is_active=is_active,
            severity=severity,
            message=message,
        )


@dataclass(frozen=True)
class DecayCheckResult:
    """
    Outcome of `check_and_apply`.

    `degradation` holds the negative deltas that were applied (empty when
    nothing was applied). `skipped_reason` says why a check was a no-op.
    """

    applied: bool
    degradation: Dict[StatKind, float] = field(default_factory=dict)
    warnings: List[DecayWarning] = field(default_factory=list)
    profile: Optional[UserProfile] = None
    skipped_reason: Optional[str] = None


class DecayService(BaseService):
    """Computes, previews and applies inactivity decay."""

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
    # Pure queries
    # ------------------------------------------------------------------ #

    def calculate_degradation(
        self,
        profile: UserProfile,
        now: Optional[datetime] = None,
        relaxed_weekend_mode: bool = False,
    ) -> Dict[StatKind, float]:
        return compute_decay(profile, now or self.now(), relaxed_weekend_mode, self.balance)

    def has_pending_decay(
        self,
        profile: UserProfile,
        now: Optional[datetime] = None,
        relaxed_weekend_mode: bool = False,
    ) -> bool:
        return bool(self.calculate_degradation(profile, now, relaxed_weekend_mode))

    def get_warnings(
        self,
        profile: UserProfile,
        settings: Optional[ProgressionSettings] = None,
        now: Optional[datetime] = None,
    ) -> List[DecayWarning]:
        """
        Warnings for every decaying category inactive for at least
        threshold - 1 days (one day of advance notice).
        """
        now = now or self.now()
        relaxed = settings.relaxed_weekend_mode if settings else False
        threshold = self.balance.decay_threshold_days

        warnings: List[DecayWarning] = []
        for category, affected in self.balance.decay_affected_stats.items():
            last = profile.last_activity_for_category(category)
            if last is None:
                continue
            days = days_inactive(last, now, relaxed)
            if days >= threshold - 1:
                warnings.append(DecayWarning.build(category, days, affected, threshold))
        return warnings

    def get_next_decay_date(
        self,
        profile: UserProfile,
        category: ActivityCategory,
        relaxed_weekend_mode: bool = False,
    ) -> Optional[datetime]:
        """
        When `category` starts decaying; None without any activity in it.

        In relaxed mode, weekend days are skipped while counting the
        threshold.
        """
        last = profile.last_activity_for_category(category)
        if last is None:
            return None

        threshold = self.balance.decay_threshold_days
        if not relaxed_weekend_mode:
            return ensure_utc(last) + timedelta(days=threshold)

        next_date = ensure_utc(last)
        weekdays_added = 0
        while weekdays_added < threshold:
            next_date += timedelta(days=1)
            if next_date.weekday() < 5:
                weekdays_added += 1
        return next_date

    # ------------------------------------------------------------------ #
    # Transaction
    # ------------------------------------------------------------------ #

    async def check_and_apply(
        self, profile_id: str, now: Optional[datetime] = None
    ) -> DecayCheckResult:
        """
        Apply pending decay to the stored profile.

        Raises:
            NotFoundError: Profile does not exist
            PersistenceError: Saving the decayed profile failed
        """
        async with LogContext(profile_id=profile_id, operation="decay_check"):
            now = ensure_utc(now) if now is not None else self.now()

            profile = await self._store.get_profile(profile_id)
            if profile is None:
                raise NotFoundError("Profile", profile_id)
            settings = await self._store.get_settings(profile_id) or ProgressionSettings.default()

            warnings = (
                self.get_warnings(profile, settings, now)
                if settings.degradation_warnings_enabled
                else []
            )

            last_decay = profile.last_decay_at
            if last_decay is not None and ensure_utc(last_decay).date() == now.date():
                self.log.debug("Decay already applied today")
                return DecayCheckResult(
                    applied=False,
                    warnings=warnings,
                    profile=profile,
                    skipped_reason="already_applied_today",
                )

            degradation = self.calculate_degradation(
                profile, now, settings.relaxed_weekend_mode
            )
            if not degradation:
                return DecayCheckResult(
                    applied=False,
                    warnings=warnings,
                    profile=profile,
                    skipped_reason="nothing_pending",
                )

            updated = apply_decay(profile, degradation, self.balance).replace(last_decay_at=now)
            await self._store.put_profile(updated)

            self.log.info(
                "Decay applied",
                extra={
                    "degradation": {stat.value: amount for stat, amount in degradation.items()},
                    "relaxed_weekend_mode": settings.relaxed_weekend_mode,
                },
            )
            await self.emit_event(
                "decay.applied",
                {
                    "profile_id": profile_id,
                    "degradation": {stat.value: amount for stat, amount in degradation.items()},
                },
            )

            return DecayCheckResult(
                applied=True,
                degradation=degradation,
                warnings=warnings,
                profile=updated,
            )
