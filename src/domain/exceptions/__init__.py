"""
Domain exceptions package.

Exports
-------
- All progression exception classes (defined in src.modules.shared.exceptions)
- EXCEPTION_TEMPLATES: Registry mapping exception types to user-facing templates
- format_exception / deletion_error_message: message helpers for presentation layers
"""

from src.modules.shared.exceptions import (
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

from .registry import (
    EXCEPTION_TEMPLATES,
    ExceptionTemplate,
    deletion_error_message,
    format_exception,
    get_exception_template,
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
    "EXCEPTION_TEMPLATES",
    "ExceptionTemplate",
    "get_exception_template",
    "format_exception",
    "deletion_error_message",
]
