"""
Unit tests for the validation layer.
"""

import logging
import math
from datetime import timedelta

import pytest

from src.domain.models.enums import ActivityKind, StatKind
from src.domain.models.settings import ProgressionSettings
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.validators import (
    ValidationStatus,
    ensure_valid_activity_record,
    validate_activity_record,
    validate_exp_reversal,
    validate_log_input,
    validate_stat_map,
    validate_stat_value,
    validate_timestamp,
)


class TestStatValue:
    """Test tri-state stat validation."""

    def test_normal_value_valid(self):
        result = validate_stat_value(5.0)

        assert result.status is ValidationStatus.VALID
        assert result.value == 5.0

    def test_below_floor_sanitized(self):
        result = validate_stat_value(0.5)

        assert result.has_warning
        assert result.value == 1.0

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_invalid(self, value):
        assert validate_stat_value(value).is_valid is False

    def test_large_value_kept_with_warning(self):
        result = validate_stat_value(2e6)

        assert result.has_warning
        assert result.value == 2e6

    def test_export_limit_only_applies_to_export(self):
        assert validate_stat_value(2e15).is_valid is True
        assert validate_stat_value(2e15, for_export=True).is_valid is False


class TestStatMap:
    def test_empty_map_invalid(self):
        assert validate_stat_map({}).is_valid is False

    def test_collects_every_issue(self):
        result = validate_stat_map(
            {StatKind.STRENGTH: math.nan, StatKind.FOCUS: 0.2, StatKind.AGILITY: 3.0}
        )

        assert result.status is ValidationStatus.INVALID
        assert len(result.issues) == 2
        assert result.value[StatKind.FOCUS] == 1.0
        assert result.value[StatKind.AGILITY] == 3.0

    def test_warning_only(self):
        result = validate_stat_map({StatKind.FOCUS: 0.2})

        assert result.status is ValidationStatus.WARNING
        assert result.value == {StatKind.FOCUS: 1.0}


class TestTimestamp:
    def test_within_tolerance(self, now):
        assert validate_timestamp(now + timedelta(minutes=30), now).is_valid

    def test_beyond_tolerance(self, now):
        assert not validate_timestamp(now + timedelta(hours=2), now).is_valid

    def test_naive_timestamp_treated_as_utc(self, now):
        naive = (now - timedelta(hours=1)).replace(tzinfo=None)
        assert validate_timestamp(naive, now).is_valid


class TestLogInput:
    """Test log-activity request validation."""

    def test_returns_parsed_kind(self, now):
        assert validate_log_input("meditation", 20, now=now) is ActivityKind.MEDITATION

    @pytest.mark.parametrize(
        "kind, duration, field",
        [
            ("juggling", 30, "activity_kind"),
            (ActivityKind.MEDITATION, 0, "duration_minutes"),
            (ActivityKind.MEDITATION, -5, "duration_minutes"),
            (ActivityKind.MEDITATION, 1441, "duration_minutes"),
            (ActivityKind.MEDITATION, 12.5, "duration_minutes"),
            (ActivityKind.MEDITATION, True, "duration_minutes"),
        ],
    )
    def test_rejections(self, now, kind, duration, field):
        with pytest.raises(ValidationError) as exc_info:
            validate_log_input(kind, duration, now=now)

        assert exc_info.value.field == field

    def test_max_duration_accepted(self, now):
        assert validate_log_input(ActivityKind.WORKOUT_CARDIO, 1440, now=now)

    def test_future_timestamp_rejected(self, now):
        with pytest.raises(ValidationError) as exc_info:
            validate_log_input(
                ActivityKind.MEDITATION, 20, now=now, timestamp=now + timedelta(days=1)
            )

        assert exc_info.value.field == "timestamp"

    def test_long_notes_rejected(self, now):
        with pytest.raises(ValidationError) as exc_info:
            validate_log_input(ActivityKind.MEDITATION, 20, now=now, notes="x" * 501)

        assert exc_info.value.field == "notes"

    def test_disabled_kind_rejected(self, now):
        settings = ProgressionSettings().replace(enabled_activities=[ActivityKind.MEDITATION])

        with pytest.raises(ValidationError) as exc_info:
            validate_log_input(ActivityKind.SOCIALIZING, 20, now=now, settings=settings)

        assert exc_info.value.field == "activity_kind"


class TestActivityRecord:
    """Test stored record validation."""

    def test_sound_record_has_no_issues(self, make_record, now):
        assert validate_activity_record(make_record(), now) == []

    def test_reports_every_problem(self, make_record):
        record = make_record(record_id=" ", duration_minutes=-5, exp_gained=math.nan)
        record = record.with_stat_gains({StatKind.FOCUS: -1.0})

        issues = validate_activity_record(record)

        assert len(issues) == 4

    def test_future_check_only_with_now(self, make_record, now):
        record = make_record(timestamp=now + timedelta(days=2))

        assert validate_activity_record(record) == []
        assert len(validate_activity_record(record, now)) == 1

    def test_ensure_valid_raises(self, make_record):
        with pytest.raises(ValidationError) as exc_info:
            ensure_valid_activity_record(make_record(duration_minutes=5000))

        assert exc_info.value.field == "activity_record"


class TestExpReversal:
    def test_normal_amount(self, make_profile):
        assert validate_exp_reversal(make_profile(), 90.0) is True

    def test_very_large_amount_allowed(self, make_profile):
        assert validate_exp_reversal(make_profile(), 5e9) is True

    def test_large_amount_threshold_from_balance(self, make_profile, balance, caplog):
        lowered = balance.replace(large_exp_reversal_warning=500.0)

        with caplog.at_level(logging.WARNING):
            assert validate_exp_reversal(make_profile(), 400.0, lowered) is True
            assert not caplog.records
            assert validate_exp_reversal(make_profile(), 600.0, lowered) is True

        assert [r.getMessage() for r in caplog.records] == ["EXP reversal of very large amount"]

    @pytest.mark.parametrize("amount", [-1.0, math.nan, math.inf])
    def test_invalid_amount(self, make_profile, amount):
        assert validate_exp_reversal(make_profile(), amount) is False

    def test_corrupt_profile(self, make_profile):
        assert validate_exp_reversal(make_profile(level=0), 10.0) is False
        assert validate_exp_reversal(make_profile(current_exp=-3.0), 10.0) is False
