"""
Profile lifecycle and settings.

Creates the default profile, applies one-time onboarding stat bonuses and
reads/writes per-profile settings.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from src.core.logging.logger import LogContext
from src.domain.models.enums import StatKind
from src.domain.models.profile import DEFAULT_PROFILE_NAME, UserProfile
from src.domain.models.settings import ProgressionSettings
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from src.modules.shared.record_store import RecordStore
from src.modules.shared.stat_calculator import apply_delta


class ProfileService(BaseService):
    """
    Profile creation, onboarding and settings access.

    Args:
        store: RecordStore implementation
        config: Application configuration
        event_bus: Event bus
        logger: Logger instance
        balance: Balance values (stat floor)
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

    async def create_profile(
        self, profile_id: str, name: str = DEFAULT_PROFILE_NAME
    ) -> UserProfile:
        """
        Create a level 1 profile with default stats and settings.

        Raises:
            ValidationError: Empty profile id
            InvalidOperationError: A profile with this id already exists
        """
        if not profile_id or not profile_id.strip():
            raise ValidationError("profile_id", "Profile ID cannot be empty")

        async with LogContext(profile_id=profile_id, operation="create_profile"):
            if await self._store.get_profile(profile_id) is not None:
                raise InvalidOperationError("create_profile", "Profile already exists")

            profile = UserProfile.create_default(
                profile_id, name or DEFAULT_PROFILE_NAME, now=self.now()
            )
            await self._store.put_profile(profile)
            await self._store.put_settings(profile_id, ProgressionSettings.default())

            self.log_operation("create_profile", profile_name=profile.name)
            return profile

    async def get_profile(self, profile_id: str) -> UserProfile:
        profile = await self._store.get_profile(profile_id)
        if profile is None:
            raise NotFoundError("Profile", profile_id)
        return profile

    async def get_or_create_profile(
        self, profile_id: str, name: str = DEFAULT_PROFILE_NAME
    ) -> UserProfile:
        profile = await self._store.get_profile(profile_id)
        if profile is not None:
            return profile
        return await self.create_profile(profile_id, name)

    async def complete_onboarding(
        self,
        profile_id: str,
        stat_bonuses: Optional[Mapping[StatKind, float]] = None,
        name: Optional[str] = None,
    ) -> UserProfile:
        """
        Apply starting stat bonuses once and mark onboarding complete.

        Raises:
            NotFoundError: Profile does not exist
            InvalidOperationError: Onboarding was already completed
            ValidationError: A bonus is negative or not finite
        """
        async with LogContext(profile_id=profile_id, operation="complete_onboarding"):
            profile = await self.get_profile(profile_id)
            if profile.has_completed_onboarding:
                raise InvalidOperationError("complete_onboarding", "Onboarding already completed")

            bonuses = {
                StatKind.from_value(stat): amount for stat, amount in (stat_bonuses or {}).items()
            }
            for stat, amount in bonuses.items():
                if not math.isfinite(amount) or amount < 0:
                    raise ValidationError(
                        "stat_bonuses", f"{stat.value} bonus must be a non-negative number"
                    )

            updated = profile.replace(
                stats=apply_delta(profile.stats, bonuses, self.balance.stat_floor),
                has_completed_onboarding=True,
                name=name or profile.name,
            )
            await self._store.put_profile(updated)
            self.log_operation(
                "complete_onboarding",
                bonuses={stat.value: amount for stat, amount in bonuses.items()},
            )
            return updated

    async def get_settings(self, profile_id: str) -> ProgressionSettings:
        return await self._store.get_settings(profile_id) or ProgressionSettings.default()

    async def update_settings(self, profile_id: str, **changes: Any) -> ProgressionSettings:
        """
        Change individual settings fields.

        Example:
            await service.update_settings("p-1", relaxed_weekend_mode=True)

        Raises:
            NotFoundError: Profile does not exist
            ValidationError: Unknown field, or no activities left enabled
        """
        async with LogContext(profile_id=profile_id, operation="update_settings"):
            await self.get_profile(profile_id)
            current = await self.get_settings(profile_id)

            unknown = set(changes) - set(current.to_dict())
            if unknown:
                raise ValidationError(
                    "settings", f"unknown setting(s): {', '.join(sorted(unknown))}"
                )

            updated = current.replace(**changes)
            if not updated.enabled_activities:
                raise ValidationError(
                    "enabled_activities", "at least one activity must stay enabled"
                )

            await self._store.put_settings(profile_id, updated)
            self.log_operation("update_settings", changed=sorted(changes))
            return updated
