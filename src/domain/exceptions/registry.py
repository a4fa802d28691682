"""
Exception message template registry.

Purpose
-------
Single source of truth for exception-to-message mappings. Presentation
layers turn any progression exception into a title, a description and
optional help text without parsing exception strings.

Design Notes
------------
Each template contains:
- title: Short error title
- template: Message template with {placeholder} interpolation from `details`
- help_text: Optional guidance for the user
- severity: ErrorSeverity level for visual styling

Activity deletion has its own message set (`deletion_error_message`) since
the same exception type maps to different guidance depending on which
step of the reversal failed.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

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
)


class ExceptionTemplate:
    """Template for formatting exception messages."""

    def __init__(
        self,
        title: str,
        template: str,
        help_text: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ):
        self.title = title
        self.template = template
        self.help_text = help_text
        self.severity = severity

    def format(self, exception: Exception) -> Dict[str, Any]:
        """Return 'title', 'description', 'help_text' and 'severity' for `exception`."""
        details: Dict[str, Any] = {}
        if isinstance(exception, ProgressionDomainException):
            details = exception.details.copy()

        try:
            description = self.template.format(**details)
        except (KeyError, IndexError, ValueError):
            # Fallback to exception message if template interpolation fails
            description = str(exception)

        return {
            "title": self.title,
            "description": description,
            "help_text": self.help_text,
            "severity": self.severity,
        }


# ============================================================================
# EXCEPTION TEMPLATE REGISTRY
# ============================================================================

EXCEPTION_TEMPLATES: Dict[type, ExceptionTemplate] = {
    ValidationError: ExceptionTemplate(
        title="Invalid Input",
        template="{field}: {validation_message}",
        help_text="Please check your input and try again.",
        severity=ErrorSeverity.INFO,
    ),
    NotFoundError: ExceptionTemplate(
        title="Not Found",
        template="{resource_type} not found.",
        severity=ErrorSeverity.INFO,
    ),
    InvalidArgumentError: ExceptionTemplate(
        title="Invalid Value",
        template="{argument}: {reason}",
        severity=ErrorSeverity.INFO,
    ),
    InvalidOperationError: ExceptionTemplate(
        title="Not Allowed",
        template="{reason}",
        severity=ErrorSeverity.INFO,
    ),
    PersistenceError: ExceptionTemplate(
        title="Save Failed",
        template="Your progress could not be saved. Please try again.",
        help_text="Nothing was changed.",
        severity=ErrorSeverity.ERROR,
    ),
    CriticalInconsistencyError: ExceptionTemplate(
        title="Data Needs Repair",
        template="Something went wrong, your data may need repair.",
        help_text="Restore from your latest backup or run a data integrity repair.",
        severity=ErrorSeverity.CRITICAL,
    ),
    UnknownEnumValueError: ExceptionTemplate(
        title="Unrecognized Data",
        template="Stored data contains an unknown {enum_name}: {value}",
        help_text="Run a data integrity check.",
        severity=ErrorSeverity.ERROR,
    ),
    BackupError: ExceptionTemplate(
        title="Backup Failed",
        template="{reason}",
        severity=ErrorSeverity.ERROR,
    ),
}


def get_exception_template(exception: Exception) -> Optional[ExceptionTemplate]:
    """Template for the exception's exact type, or its nearest registered base."""
    for exception_type in type(exception).__mro__:
        template = EXCEPTION_TEMPLATES.get(exception_type)
        if template is not None:
            return template
    return None


def format_exception(exception: Exception) -> Dict[str, Any]:
    template = get_exception_template(exception)
    if template is None:
        return {
            "title": "Unexpected Error",
            "description": "An unexpected error occurred. Please try again.",
            "help_text": None,
            "severity": ErrorSeverity.ERROR,
        }
    return template.format(exception)


# ============================================================================
# ACTIVITY DELETION MESSAGES
# ============================================================================


def deletion_error_message(exception: Exception) -> str:
    """
    User-facing message for a failed activity deletion.

    Example:
        >>> deletion_error_message(NotFoundError("Activity", "a-1"))
        'Activity not found. It may have already been deleted.'
    """
    if isinstance(exception, CriticalInconsistencyError):
        return (
            "Something went wrong, your data may need repair. "
            "Please restore from your latest backup."
        )
    if isinstance(exception, PersistenceError):
        return "Failed to delete activity after user update. Please try again."
    if isinstance(exception, NotFoundError):
        if exception.resource_type == "Activity":
            return "Activity not found. It may have already been deleted."
        return "No user found. Please complete onboarding first."
    if isinstance(exception, ValidationError):
        if exception.field == "activity_id":
            return "Invalid activity ID."
        if exception.field == "timestamp":
            return (
                "Activity timestamp is in the future, indicating a data inconsistency. "
                "The activity was not deleted."
            )
        return (
            "This activity is invalid and cannot be safely deleted: "
            f"{exception.validation_message}"
        )
    return f"Failed to delete activity: {exception}"
