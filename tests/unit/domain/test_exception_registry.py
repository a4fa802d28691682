"""
Unit tests for domain exceptions and their user-facing messages.
"""

import pytest

from src.domain.exceptions import (
    deletion_error_message,
    format_exception,
    get_exception_template,
)
from src.modules.shared.exceptions import (
    BackupError,
    CriticalInconsistencyError,
    ErrorSeverity,
    NotFoundError,
    PersistenceError,
    ValidationError,
    is_transient_error,
    should_alert,
)


class TestExceptionProperties:
    """Test severity and retry flags."""

    def test_persistence_error_is_retryable(self):
        exc = PersistenceError("put_profile", "disk full")

        assert is_transient_error(exc) is True
        assert exc.error_code == "PERSISTENCE_PUT_PROFILE"

    def test_critical_inconsistency_is_not_a_persistence_error(self):
        exc = CriticalInconsistencyError("delete_activity", "restore failed")

        assert not isinstance(exc, PersistenceError)
        assert is_transient_error(exc) is False
        assert exc.severity is ErrorSeverity.CRITICAL
        assert should_alert(exc) is True

    def test_validation_error_details(self):
        exc = ValidationError("duration_minutes", "must be greater than 0")

        assert exc.to_dict()["details"] == {
            "field": "duration_minutes",
            "validation_message": "must be greater than 0",
        }
        assert should_alert(exc) is False


class TestTemplates:
    def test_template_interpolates_details(self):
        formatted = format_exception(ValidationError("notes", "too long"))

        assert formatted["title"] == "Invalid Input"
        assert formatted["description"] == "notes: too long"

    def test_unregistered_exception_gets_generic_message(self):
        formatted = format_exception(RuntimeError("boom"))

        assert formatted["title"] == "Unexpected Error"

    def test_lookup_walks_class_hierarchy(self):
        class ExportRejected(BackupError):
            pass

        template = get_exception_template(ExportRejected("nope"))

        assert template is not None
        assert template.title == "Backup Failed"

    def test_critical_template_points_to_repair(self):
        formatted = format_exception(CriticalInconsistencyError("reset_all", "restore failed"))

        assert formatted["severity"] is ErrorSeverity.CRITICAL
        assert "backup" in formatted["help_text"]


class TestDeletionMessages:
    """Each deletion failure maps to its own guidance."""

    @pytest.mark.parametrize(
        "exc, expected",
        [
            (
                NotFoundError("Activity", "a-1"),
                "Activity not found. It may have already been deleted.",
            ),
            (
                NotFoundError("Profile", "p-1"),
                "No user found. Please complete onboarding first.",
            ),
            (ValidationError("activity_id", "Invalid activity ID"), "Invalid activity ID."),
            (
                PersistenceError("delete_activity", "locked"),
                "Failed to delete activity after user update. Please try again.",
            ),
        ],
    )
    def test_messages(self, exc, expected):
        assert deletion_error_message(exc) == expected

    def test_future_timestamp_message(self):
        message = deletion_error_message(ValidationError("timestamp", "in the future"))

        assert "in the future" in message
        assert "not deleted" in message

    def test_invalid_record_message_includes_reason(self):
        message = deletion_error_message(ValidationError("activity_record", "duration 0"))

        assert message.endswith("duration 0")

    def test_critical_message_mentions_backup(self):
        message = deletion_error_message(CriticalInconsistencyError("delete_activity", "x"))

        assert "restore from your latest backup" in message
