"""
Core infrastructure layer for the progression engine.

Purpose
-------
Provide a single import surface for the core infrastructure subsystems:

- Configuration (Config, Environment)
- Logging (structured logging, logger factory, LogContext)
- Event bus (EventBus, ListenerPriority)
- Database subsystem (DatabaseService)

Non-Responsibilities
--------------------
- Progression rules or services (see src.modules)
- Any side effects beyond the imports of the submodules themselves

Feature modules should still import from the specific submodule; these
re-exports are for application wiring and scripts.
"""

from __future__ import annotations

from src.core.config import Config, Environment
from src.core.database import DatabaseService
from src.core.event import EventBus, ListenerPriority
from src.core.logging import LogContext, get_logger, setup_logging

__all__ = [
    "Config",
    "Environment",
    "DatabaseService",
    "EventBus",
    "ListenerPriority",
    "LogContext",
    "get_logger",
    "setup_logging",
]
