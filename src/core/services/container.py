"""
Service Container
=================

Purpose
-------
Builds every progression service once, over one RecordStore, and hands out
the shared instances.

Responsibilities
----------------
- Construct services with the common (store, config, event_bus, logger)
  dependencies plus the shared balance and clock
- Record per-service construction time for startup logs
- Fail fast if a service is requested before `initialize()`

Non-Responsibilities
--------------------
- Database engine lifecycle (DatabaseService)
- Business logic
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Type, TypeVar

from src.core.logging.logger import get_logger
from src.modules.backup.service import BackupService
from src.modules.decay.service import DecayService
from src.modules.history.service import ActivityHistoryService
from src.modules.lifecycle.service import LifecycleService
from src.modules.maintenance.integrity_service import DataIntegrityService
from src.modules.maintenance.migration_service import ActivityMigrationService
from src.modules.maintenance.reset_service import DataResetService
from src.modules.profile.service import ProfileService
from src.modules.progression.service import ProgressionService
from src.modules.shared.balance import BalanceConfig

if TYPE_CHECKING:
    from datetime import datetime
    from logging import Logger

    from src.core.event.bus import EventBus
    from src.modules.shared.record_store import RecordStore

logger = get_logger(__name__)

ServiceT = TypeVar("ServiceT")


class ServiceContainer:
    """
    Holds one instance of every progression service.

    Usage:
        container = ServiceContainer(store, Config, event_bus, logger, balance=balance)
        container.initialize()

        await container.progression.log_activity("p-1", "meditation", 20)
    """

    def __init__(
        self,
        store: RecordStore,
        config: Any,
        event_bus: EventBus,
        logger: Logger,
        *,
        balance: Optional[BalanceConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._config = config
        self._event_bus = event_bus
        self._logger = logger
        self._balance = balance or BalanceConfig()
        self._clock = clock

        self._services: Dict[str, Any] = {}
        self._service_init_times: Dict[str, float] = {}
        self._initialized = False

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def initialize(self) -> None:
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        init_start = time.perf_counter()

        self._create("profile", ProfileService)
        self._create("progression", ProgressionService)
        decay = self._create("decay", DecayService)
        self._create("history", ActivityHistoryService)
        self._create("backup", BackupService)
        self._create("migration", ActivityMigrationService)
        self._create("integrity", DataIntegrityService)
        self._create("reset", DataResetService, with_balance=False)

        start = time.perf_counter()
        self._services["lifecycle"] = LifecycleService(
            decay, self._config, self._event_bus, self._logger, clock=self._clock
        )
        self._service_init_times["lifecycle"] = time.perf_counter() - start

        self._initialized = True
        self._logger.info(
            "Service container initialized",
            extra={
                "service_count": len(self._services),
                "init_ms": round((time.perf_counter() - init_start) * 1000, 2),
            },
        )

    def shutdown(self) -> None:
        self._services.clear()
        self._initialized = False
        self._logger.info("Service container shut down")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def _create(
        self, name: str, service_cls: Type[ServiceT], with_balance: bool = True
    ) -> ServiceT:
        start = time.perf_counter()
        kwargs: Dict[str, Any] = {"clock": self._clock}
        if with_balance:
            kwargs["balance"] = self._balance
        service = service_cls(self._store, self._config, self._event_bus, self._logger, **kwargs)
        self._service_init_times[name] = time.perf_counter() - start
        self._services[name] = service
        return service

    def _require(self, name: str) -> Any:
        if not self._initialized:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return self._services[name]

    def get_init_times(self) -> Dict[str, float]:
        return dict(self._service_init_times)

    # ========================================================================
    # Service access
    # ========================================================================

    @property
    def profile(self) -> ProfileService:
        return self._require("profile")

    @property
    def progression(self) -> ProgressionService:
        return self._require("progression")

    @property
    def decay(self) -> DecayService:
        return self._require("decay")

    @property
    def lifecycle(self) -> LifecycleService:
        return self._require("lifecycle")

    @property
    def history(self) -> ActivityHistoryService:
        return self._require("history")

    @property
    def backup(self) -> BackupService:
        return self._require("backup")

    @property
    def migration(self) -> ActivityMigrationService:
        return self._require("migration")

    @property
    def integrity(self) -> DataIntegrityService:
        return self._require("integrity")

    @property
    def reset(self) -> DataResetService:
        return self._require("reset")
