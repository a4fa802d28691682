"""
Unit tests for stat gains, reversals and decay amounts.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from src.domain.models.enums import ActivityCategory, ActivityKind, StatKind
from src.modules.shared.balance import BalanceConfig
from src.modules.shared.exceptions import InvalidArgumentError
from src.modules.shared.stat_calculator import (
    apply_decay,
    apply_delta,
    compute_category_decay,
    compute_decay,
    compute_gains,
    compute_reversal,
    count_weekdays_between,
    days_inactive,
    decay_amount,
    max_gain_stat,
    negate,
    stat_totals,
    validate_reversal,
)


class TestComputeGains:
    """Test the hourly and fixed gain tables."""

    def test_hourly_rates_scale_with_duration(self):
        gains = compute_gains(ActivityKind.STUDY_SERIOUS, 90)

        assert gains[StatKind.INTELLIGENCE] == pytest.approx(0.09)
        assert gains[StatKind.FOCUS] == pytest.approx(0.06)
        assert set(gains) == {StatKind.INTELLIGENCE, StatKind.FOCUS}

    def test_fixed_gain_ignores_duration(self):
        assert compute_gains(ActivityKind.QUIT_BAD_HABIT, 1) == {StatKind.FOCUS: 0.03}
        assert compute_gains(ActivityKind.QUIT_BAD_HABIT, 900) == {StatKind.FOCUS: 0.03}

    def test_unknown_kind_rejected(self):
        with pytest.raises(InvalidArgumentError):
            compute_gains("juggling", 30)

    @pytest.mark.parametrize("duration", [-10, math.nan])
    def test_invalid_duration_rejected(self, duration):
        with pytest.raises(InvalidArgumentError):
            compute_gains(ActivityKind.MEDITATION, duration)


class TestComputeReversal:
    """Stored gains win over the current table."""

    def test_stored_gains_returned_verbatim(self):
        stored = {StatKind.FOCUS: 0.05}

        assert compute_reversal(ActivityKind.MEDITATION, 60, stored) == stored

    def test_changed_table_does_not_affect_stored_gains(self):
        # Arrange
        balance = BalanceConfig().with_hourly_rates(
            {ActivityKind.MEDITATION: {StatKind.FOCUS: 0.5}}
        )

        # Act
        reversal = compute_reversal(
            ActivityKind.MEDITATION, 60, {StatKind.FOCUS: 0.05}, balance
        )

        # Assert
        assert reversal == {StatKind.FOCUS: 0.05}

    def test_legacy_record_recomputes_from_table(self):
        reversal = compute_reversal(ActivityKind.MEDITATION, 120, {})

        assert reversal[StatKind.FOCUS] == pytest.approx(0.10)

    def test_stat_totals_mixes_stored_and_recomputed(self, make_record):
        records = [
            make_record(
                kind=ActivityKind.MEDITATION,
                duration_minutes=60,
                stat_gains={StatKind.FOCUS: 0.2},
            ),
            make_record(kind=ActivityKind.MEDITATION, duration_minutes=60),
        ]

        totals = stat_totals(records)

        assert totals[StatKind.FOCUS] == pytest.approx(0.25)
        assert totals[StatKind.STRENGTH] == 0.0


class TestApplyDelta:
    """Test floor clamping."""

    def test_reduction_clamps_at_floor(self):
        result = apply_delta({StatKind.STRENGTH: 1.03}, {StatKind.STRENGTH: -0.05})

        assert result[StatKind.STRENGTH] == 1.0

    def test_missing_stats_start_at_floor(self):
        result = apply_delta({}, {StatKind.FOCUS: 0.5})

        assert set(result) == set(StatKind)
        assert result[StatKind.FOCUS] == 1.5
        assert result[StatKind.CHARISMA] == 1.0

    def test_no_ceiling(self):
        result = apply_delta({StatKind.STRENGTH: 1e7}, {StatKind.STRENGTH: 1.0})

        assert result[StatKind.STRENGTH] == 1e7 + 1.0

    def test_negate(self):
        assert negate({StatKind.FOCUS: 0.2}) == {StatKind.FOCUS: -0.2}


class TestValidateReversal:
    def test_underflow_is_allowed(self):
        assert validate_reversal({StatKind.FOCUS: 1.0}, {StatKind.FOCUS: 5.0}) is True

    def test_empty_stats_rejected(self):
        assert validate_reversal({}, {StatKind.FOCUS: 0.1}) is False

    @pytest.mark.parametrize("amount", [-0.1, math.nan, math.inf])
    def test_invalid_amount_rejected(self, amount):
        assert validate_reversal({StatKind.FOCUS: 2.0}, {StatKind.FOCUS: amount}) is False

    def test_corrupt_current_value_rejected(self):
        assert validate_reversal({StatKind.FOCUS: math.nan}, {StatKind.FOCUS: 0.1}) is False


class TestMaxGainStat:
    def test_largest_gain(self):
        gains = {StatKind.INTELLIGENCE: 0.09, StatKind.FOCUS: 0.06}
        assert max_gain_stat(gains) is StatKind.INTELLIGENCE

    def test_nothing_gained(self):
        assert max_gain_stat({}) is None


class TestInactivityCounting:
    """Test day counting for decay."""

    def test_calendar_days(self):
        start = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)
        assert days_inactive(start, start + timedelta(days=4, hours=2)) == 4

    def test_weekend_days_skipped(self):
        friday = datetime(2026, 10, 16, 18, 0, tzinfo=timezone.utc)
        monday = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)

        assert count_weekdays_between(friday, monday) == 1
        assert days_inactive(friday, monday, relaxed_weekend_mode=True) == 1
        assert days_inactive(friday, monday) == 2


class TestDecayAmount:
    """Test decay periods and the per-check cap."""

    @pytest.mark.parametrize(
        "days, expected",
        [(0, 0.0), (2, 0.0), (3, -0.01), (5, -0.01), (7, -0.02), (15, -0.05), (60, -0.05)],
    )
    def test_amount_by_days(self, days, expected):
        assert decay_amount(days) == pytest.approx(expected)


class TestComputeDecay:
    def test_only_neglected_categories_decay(self, make_profile, now):
        # Arrange
        profile = make_profile(
            last_activity={
                ActivityKind.WORKOUT_WEIGHTS: now - timedelta(days=7),
                ActivityKind.STUDY_SERIOUS: now - timedelta(days=1),
                ActivityKind.MEDITATION: now - timedelta(days=30),
            }
        )

        # Act
        deltas = compute_decay(profile, now)

        # Assert
        assert set(deltas) == {StatKind.STRENGTH, StatKind.AGILITY, StatKind.ENDURANCE}
        assert all(amount == pytest.approx(-0.02) for amount in deltas.values())

    def test_category_uses_most_recent_kind(self, make_profile, now):
        profile = make_profile(
            last_activity={
                ActivityKind.WORKOUT_WEIGHTS: now - timedelta(days=20),
                ActivityKind.WORKOUT_YOGA: now - timedelta(days=1),
            }
        )

        assert compute_category_decay(profile, ActivityCategory.WORKOUT, now) == {}

    def test_never_logged_category_does_not_decay(self, make_profile, now):
        assert compute_decay(make_profile(), now) == {}

    def test_apply_decay_respects_floor(self, make_profile):
        profile = make_profile(stats={StatKind.STRENGTH: 1.01, StatKind.FOCUS: 3.0})

        decayed = apply_decay(profile, {StatKind.STRENGTH: -0.05, StatKind.FOCUS: -0.05})

        assert decayed.stats[StatKind.STRENGTH] == 1.0
        assert decayed.stats[StatKind.FOCUS] == pytest.approx(2.95)
