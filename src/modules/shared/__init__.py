"""
Progression Shared Module

Purpose
-------
Domain-level foundations used by every progression service:
- Domain exceptions and error helpers (`exceptions`)
- BaseService and BaseRepository patterns
- Progression constants and the balance loader
- Pure calculation modules (`formulas`, `stat_calculator`, `validators`)
- The RecordStore contract

Only the exception hierarchy is re-exported here. The domain enums import
it, so this package must not pull in anything that imports the enums back.

Usage
-----
    from src.modules.shared import NotFoundError, ValidationError
    from src.modules.shared.base_service import BaseService
    from src.modules.shared.formulas import apply_gain
"""

from __future__ import annotations

from .exceptions import (
    BackupError,
    CriticalInconsistencyError,
    ErrorSeverity,
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
    PersistenceError,
    ProgressionDomainException,
    UnknownEnumValueError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

__all__ = [
    "ProgressionDomainException",
    "ValidationError",
    "NotFoundError",
    "PersistenceError",
    "CriticalInconsistencyError",
    "InvalidArgumentError",
    "UnknownEnumValueError",
    "BackupError",
    "InvalidOperationError",
    "ErrorSeverity",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]
