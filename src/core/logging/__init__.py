"""
Logging infrastructure: JSON or text output through a queue listener, and
ContextVar-based `LogContext` for per-operation context.
"""

from src.core.logging.logger import (
    JSONFormatter,
    LogContext,
    get_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "LogContext",
    "JSONFormatter",
]
