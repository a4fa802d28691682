"""
App lifecycle gate for decay checks.

The host process reports pause and resume transitions. A resume only
triggers a decay check when the process was paused for at least
`RESUME_CHECK_INTERVAL_MINUTES`; shorter interruptions are ignored.
There is no polling.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from src.domain.models.base import ensure_utc
from src.modules.decay.service import DecayCheckResult, DecayService
from src.modules.shared.base_service import BaseService


class LifecycleService(BaseService):
    """
    Tracks pause/resume and runs decay checks through `DecayService`.

    Args:
        decay_service: Service that applies decay
        config: Application configuration (reads RESUME_CHECK_INTERVAL_MINUTES)
        event_bus: Event bus
        logger: Logger instance
        clock: Returns current UTC time
    """

    def __init__(
        self,
        decay_service: DecayService,
        config: Any,
        event_bus: Any,
        logger: Any,
        *,
        clock=None,
    ) -> None:
        super().__init__(config, event_bus, logger, clock=clock)
        self._decay = decay_service
        self._paused_at: Optional[datetime] = None
        self._initialized = False
        self.last_result: Optional[DecayCheckResult] = None

    @property
    def paused_at(self) -> Optional[datetime]:
        return self._paused_at

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def resume_interval(self) -> timedelta:
        minutes = self.get_config("RESUME_CHECK_INTERVAL_MINUTES", 60)
        return timedelta(minutes=minutes)

    async def initialize(self, profile_id: str) -> DecayCheckResult:
        """Run the startup decay check unconditionally."""
        result = await self._decay.check_and_apply(profile_id, self.now())
        self.last_result = result
        self._initialized = True
        self.log_operation(
            "lifecycle_initialize", profile_id=profile_id, decay_applied=result.applied
        )
        return result

    def on_pause(self, now: Optional[datetime] = None) -> None:
        self._paused_at = ensure_utc(now) if now is not None else self.now()
        self.log.debug("Process paused", extra={"paused_at": self._paused_at.isoformat()})

    async def on_resume(
        self, profile_id: str, now: Optional[datetime] = None
    ) -> Optional[DecayCheckResult]:
        """
        Run a decay check if the pause was long enough.

        Returns:
            The check result, or None when no pause was recorded or the
            pause was shorter than the resume interval.
        """
        now = ensure_utc(now) if now is not None else self.now()
        paused_at = self._paused_at
        self._paused_at = None

        if paused_at is None:
            return None

        paused_for = now - paused_at
        if paused_for < self.resume_interval:
            self.log.debug(
                "Skipping decay check after short pause",
                extra={"paused_seconds": paused_for.total_seconds()},
            )
            return None

        result = await self._decay.check_and_apply(profile_id, now)
        self.last_result = result
        return result
