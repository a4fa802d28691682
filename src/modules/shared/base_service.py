"""
Base Service Foundation

Purpose
-------
Provides the foundational class for all progression services. Services
implement the business transactions, enforce business rules, and emit
domain events once their changes are persisted.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers
- An injectable clock so tests control "now"
- Balance values shared by the pure calculation modules

What this class does NOT do:
- Talk to storage directly (that's the RecordStore's job)
- Contain progression rules (those live in formulas/stat_calculator)

Usage
-----
    class DecayService(BaseService):
        def __init__(self, store, config, event_bus, logger, balance=None, clock=None):
            super().__init__(config, event_bus, logger, balance=balance, clock=clock)
            self._store = store
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from src.core.config.errors import ConfigError
from src.core.database.base import utc_now
from src.domain.models.base import ensure_utc
from src.modules.shared.balance import BalanceConfig

if TYPE_CHECKING:
    from logging import Logger

    from src.core.event.bus import EventBus

Clock = Callable[[], datetime]


class BaseService:
    """
    Base class for all progression services.

    Args:
        config: Application configuration (the `Config` class)
        event_bus: Event bus for cross-module communication
        logger: Logger instance
        balance: Balance values; built-in defaults when omitted
        clock: Returns the current UTC time; `utc_now` when omitted
    """

    def __init__(
        self,
        config: Any,
        event_bus: EventBus,
        logger: Logger,
        *,
        balance: Optional[BalanceConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config
        self._events = event_bus
        self.log = logger
        self.balance = balance or BalanceConfig()
        self._clock: Clock = clock or utc_now

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve a configuration value.

        Raises:
            ConfigError: If required=True and key is missing
        """
        value = getattr(self._config, key, default)
        if required and value is None:
            raise ConfigError(f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Publish a domain event. Only call after the change is persisted.

        Listener failures are isolated by the bus and never reach here.
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        """Log a service error with full context."""
        self.log.error(
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
