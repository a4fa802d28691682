"""
Data integrity checks and repair.

`check` inspects the stored profile and its activity records for values
that the progression rules would never produce (level below 1, negative
EXP, stats under the floor, future timestamps, non-finite numbers).
`repair` fixes the profile-level problems in place; record-level problems
are reported only, since deleting or rewriting history is a user decision.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from src.core.logging.logger import LogContext
from src.domain.models.activity import ActivityRecord
from src.domain.models.base import ensure_utc
from src.domain.models.profile import UserProfile
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import MIN_LEVEL
from src.modules.shared.exceptions import NotFoundError
from src.modules.shared.record_store import RecordStore


class IssueKind(str, Enum):
    MISSING_DATA = "missing_data"
    INVALID_DATA = "invalid_data"
    DUPLICATE_DATA = "duplicate_data"


class IssueSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class IntegrityIssue:
    kind: IssueKind
    severity: IssueSeverity
    description: str
    affected: str


@dataclass(frozen=True)
class IntegrityReport:
    issues: List[IntegrityIssue] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return not self.issues

    @property
    def has_critical_issues(self) -> bool:
        return any(issue.severity is IssueSeverity.CRITICAL for issue in self.issues)

    def summary(self) -> Dict[IssueSeverity, int]:
        return dict(Counter(issue.severity for issue in self.issues))


def _invalid(severity: IssueSeverity, description: str, affected: str) -> IntegrityIssue:
    return IntegrityIssue(IssueKind.INVALID_DATA, severity, description, affected)


class DataIntegrityService(BaseService):
    """Checks and repairs stored progression data for one profile."""

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
    # Checks
    # ------------------------------------------------------------------ #

    def _profile_issues(self, profile: UserProfile, now: datetime) -> List[IntegrityIssue]:
        issues: List[IntegrityIssue] = []
        floor = self.balance.stat_floor

        if profile.level < MIN_LEVEL:
            issues.append(
                _invalid(IssueSeverity.HIGH, "User level is less than 1", "profile.level")
            )
        if not math.isfinite(profile.current_exp):
            issues.append(
                _invalid(IssueSeverity.HIGH, "User EXP is not finite", "profile.current_exp")
            )
        elif profile.current_exp < 0:
            issues.append(
                _invalid(IssueSeverity.HIGH, "User EXP is negative", "profile.current_exp")
            )

        for stat, value in profile.stats.items():
            affected = f"profile.stats.{stat.value}"
            if not math.isfinite(value):
                description = f"Stat {stat.value} is not finite ({value})"
                issues.append(_invalid(IssueSeverity.HIGH, description, affected))
            elif value < floor:
                description = f"Stat {stat.value} is below minimum value ({floor})"
                issues.append(_invalid(IssueSeverity.MEDIUM, description, affected))
            elif value > self.balance.large_stat_warning:
                description = f"Stat {stat.value} is unusually high ({value})"
                issues.append(_invalid(IssueSeverity.LOW, description, affected))

        for kind, when in profile.last_activity.items():
            if ensure_utc(when) > now:
                issues.append(
                    _invalid(
                        IssueSeverity.MEDIUM,
                        f"Last activity date for {kind.value} is in the future",
                        f"profile.last_activity.{kind.value}",
                    )
                )
        return issues

    def _activity_issues(
        self, records: List[ActivityRecord], now: datetime
    ) -> List[IntegrityIssue]:
        issues: List[IntegrityIssue] = []
        future_limit = now + timedelta(minutes=self.balance.future_tolerance_minutes)

        for record in records:
            affected = f"activity.{record.id}"
            prefix = f"Activity {record.id}"

            if record.duration_minutes <= 0:
                description = f"{prefix} has invalid duration: {record.duration_minutes}"
                issues.append(_invalid(IssueSeverity.MEDIUM, description, affected))
            elif record.duration_minutes > self.balance.max_duration_minutes:
                description = (
                    f"{prefix} has unusually long duration: {record.duration_minutes} minutes"
                )
                issues.append(_invalid(IssueSeverity.LOW, description, affected))

            if ensure_utc(record.timestamp) > future_limit:
                issues.append(
                    _invalid(IssueSeverity.MEDIUM, f"{prefix} has future timestamp", affected)
                )

            if not math.isfinite(record.exp_gained):
                issues.append(
                    _invalid(IssueSeverity.HIGH, f"{prefix} has non-finite EXP gain", affected)
                )
            elif record.exp_gained < 0:
                issues.append(
                    _invalid(IssueSeverity.MEDIUM, f"{prefix} has negative EXP gain", affected)
                )

            for stat, amount in record.stat_gains.items():
                if not math.isfinite(amount) or amount < 0:
                    description = f"{prefix} has invalid stat gain for {stat.value}: {amount}"
                    issues.append(_invalid(IssueSeverity.MEDIUM, description, affected))

        counts = Counter(record.id for record in records)
        duplicates = sorted(activity_id for activity_id, count in counts.items() if count > 1)
        if duplicates:
            issues.append(
                IntegrityIssue(
                    IssueKind.DUPLICATE_DATA,
                    IssueSeverity.MEDIUM,
                    f"Duplicate activity IDs found: {', '.join(duplicates)}",
                    "activities",
                )
            )
        return issues

    async def check(self, profile_id: str, now: Optional[datetime] = None) -> IntegrityReport:
        async with LogContext(profile_id=profile_id, operation="integrity_check"):
            now = ensure_utc(now) if now is not None else self.now()

            profile = await self._store.get_profile(profile_id)
            if profile is None:
                return IntegrityReport(
                    [
                        IntegrityIssue(
                            IssueKind.MISSING_DATA,
                            IssueSeverity.CRITICAL,
                            "No user data found",
                            "profile",
                        )
                    ]
                )

            records = list(await self._store.list_activities(profile_id))
            report = IntegrityReport(
                self._profile_issues(profile, now) + self._activity_issues(records, now)
            )

            if report.is_healthy:
                self.log.debug("Integrity check passed", extra={"activity_count": len(records)})
            else:
                self.log.warning(
                    "Integrity check found issues",
                    extra={
                        "issue_count": len(report.issues),
                        "descriptions": [issue.description for issue in report.issues],
                    },
                )
            return report

    # ------------------------------------------------------------------ #
    # Repair
    # ------------------------------------------------------------------ #

    async def repair(self, profile_id: str) -> List[str]:
        """
        Fix profile level, EXP and stats; returns one message per fix.

        Raises:
            NotFoundError: Profile does not exist
            PersistenceError: Saving the repaired profile failed
        """
        async with LogContext(profile_id=profile_id, operation="integrity_repair"):
            profile = await self._store.get_profile(profile_id)
            if profile is None:
                raise NotFoundError("Profile", profile_id)

            fixes: List[str] = []
            changes: Dict[str, Any] = {}
            floor = self.balance.stat_floor

            if profile.level < MIN_LEVEL:
                changes["level"] = MIN_LEVEL
                fixes.append("Reset user level to minimum value (1)")

            if not math.isfinite(profile.current_exp) or profile.current_exp < 0:
                changes["current_exp"] = 0.0
                fixes.append("Reset user EXP to 0")

            bad_stats = [
                stat for stat, value in profile.stats.items()
                if not math.isfinite(value) or value < floor
            ]
            if bad_stats:
                stats = dict(profile.stats)
                for stat in bad_stats:
                    stats[stat] = floor
                changes["stats"] = stats
                fixes.append(f"Reset invalid stats to minimum value ({floor})")

            if changes:
                await self._store.put_profile(profile.replace(**changes))
                self.log.info("Profile repaired", extra={"fixes": fixes})
            return fixes
