"""
Domain exceptions for the progression engine.

Every error a caller can observe from a progression transaction is one of
these classes. The class alone tells presentation code what to offer:

- `ValidationError`, `NotFoundError`, `InvalidOperationError`: show the
  message; nothing was changed.
- `PersistenceError`: retryable; the stored state is consistent.
- `CriticalInconsistencyError`: rollback failed; route to a repair flow.
  It is a sibling of `PersistenceError`, so retry handlers never catch it.

Each instance carries `message`, a `details` dict, an `ErrorSeverity`,
`is_retryable` and a stable `error_code`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"  # expected rejections (bad input, missing records)
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"  # stored state is known to be inconsistent


class ProgressionDomainException(Exception):
    """
    Base class of the hierarchy.

    >>> raise ProgressionDomainException("Reversal failed", {"activity_id": "a-1"})
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or type(self).__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form for structured logs."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        suffix = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{suffix}"


class ValidationError(ProgressionDomainException):
    """Input or a stored record failed validation. No mutation happened."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(ProgressionDomainException):
    """A referenced profile or activity does not exist."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        message = f"{resource_type} not found"
        if identifier is not None:
            message = f"{message}: {identifier}"
        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class PersistenceError(ProgressionDomainException):
    """
    A record store call failed.

    When this reaches the caller the store is either untouched or was
    restored by a compensating write, so the operation may be retried.
    """

    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Persistence failure during {operation}: {reason}",
            details={"operation": operation, "reason": reason},
            error_code=f"PERSISTENCE_{operation.upper()}",
        )


class CriticalInconsistencyError(ProgressionDomainException):
    """The compensating write failed too; stored state may be inconsistent."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Critical inconsistency after {operation}: {reason}",
            details={"operation": operation, "reason": reason},
            error_code="CRITICAL_INCONSISTENCY",
        )


class InvalidArgumentError(ProgressionDomainException):
    """Out-of-domain argument to a pure calculation function."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, argument: str, reason: str) -> None:
        self.argument = argument
        self.reason = reason
        super().__init__(
            f"Invalid argument '{argument}': {reason}",
            details={"argument": argument, "reason": reason},
            error_code=f"INVALID_{argument.upper()}",
        )


class UnknownEnumValueError(ProgressionDomainException):
    """A persisted string names no member of `enum_name`."""

    def __init__(self, enum_name: str, value: Any) -> None:
        self.enum_name = enum_name
        self.value = value
        super().__init__(
            f"Unknown {enum_name} value: {value!r}",
            details={"enum_name": enum_name, "value": value},
            error_code=f"UNKNOWN_{enum_name.upper()}",
        )


class BackupError(ProgressionDomainException):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            f"Backup failed: {reason}",
            details={"reason": reason},
            error_code="BACKUP_FAILED",
        )


class InvalidOperationError(ProgressionDomainException):
    """
    The action is not allowed in the current state.

    >>> raise InvalidOperationError("create_profile", "Profile already exists")
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


def is_transient_error(exc: Exception) -> bool:
    return isinstance(exc, ProgressionDomainException) and exc.is_retryable


def is_store_failure(exc: BaseException) -> bool:
    """
    True for a failed record store call: a PersistenceError, or any other
    non-domain Exception a store implementation raised (timeouts, OSError).

    Cancellation and domain errors other than PersistenceError are not
    store failures and are re-raised unchanged by compensating code.
    """
    if isinstance(exc, PersistenceError):
        return True
    return isinstance(exc, Exception) and not isinstance(exc, ProgressionDomainException)


def get_error_severity(exc: Exception) -> ErrorSeverity:
    if isinstance(exc, ProgressionDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """ERROR and CRITICAL are alert-worthy."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
