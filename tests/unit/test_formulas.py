"""
Unit tests for the EXP curve and level cascades.
"""

import math

import pytest

from src.domain.models.enums import ActivityKind
from src.modules.shared.balance import BalanceConfig
from src.modules.shared.exceptions import InvalidArgumentError
from src.modules.shared.formulas import (
    apply_gain,
    apply_removal,
    compute_exp_gain,
    exp_progress_fraction,
    exp_threshold,
    exp_to_next_level,
    total_exp_for_level,
)


class TestExpThreshold:
    """Test the per-level EXP requirement."""

    def test_level_1_requires_base(self):
        assert exp_threshold(1) == 1000.0

    def test_growth_per_level(self):
        assert exp_threshold(2) == pytest.approx(1200.0)
        assert exp_threshold(3) == pytest.approx(1440.0)

    def test_threshold_strictly_increasing(self):
        thresholds = [exp_threshold(level) for level in range(1, 30)]
        assert thresholds == sorted(thresholds)
        assert len(set(thresholds)) == len(thresholds)

    @pytest.mark.parametrize("level", [0, -3])
    def test_level_below_one_rejected(self, level):
        with pytest.raises(InvalidArgumentError):
            exp_threshold(level)

    def test_custom_balance(self):
        balance = BalanceConfig(base_exp_threshold=500.0, exp_growth_rate=2.0)
        assert exp_threshold(3, balance) == 2000.0


class TestApplyGain:
    """Test the level-up cascade."""

    def test_gain_below_threshold_keeps_level(self):
        change = apply_gain(1, 100.0, 200.0)

        assert change.new_level == 1
        assert change.new_exp == 300.0
        assert change.levels_gained == 0

    def test_single_level_up_carries_overflow(self):
        change = apply_gain(1, 950.0, 1000.0)

        assert change.new_level == 2
        assert change.new_exp == pytest.approx(950.0)
        assert change.levels_gained == 1

    def test_exact_threshold_levels_up(self):
        change = apply_gain(1, 0.0, 1000.0)

        assert change.new_level == 2
        assert change.new_exp == 0.0

    def test_multi_level_cascade(self):
        # 1000 (L1) + 1200 (L2) + 100 left over
        change = apply_gain(1, 0.0, 2300.0)

        assert change.new_level == 3
        assert change.new_exp == pytest.approx(100.0)
        assert change.levels_gained == 2
        assert change.capped_at_safety_limit is False

    def test_safety_limit_stops_cascade(self):
        balance = BalanceConfig(max_cascade_iterations=3)

        change = apply_gain(1, 0.0, 1e9, balance)

        assert change.capped_at_safety_limit is True
        assert change.new_level == 4
        assert change.new_exp > exp_threshold(4, balance)

    @pytest.mark.parametrize("amount", [-1.0, math.nan, math.inf])
    def test_invalid_amount_rejected(self, amount):
        with pytest.raises(InvalidArgumentError):
            apply_gain(1, 0.0, amount)

    def test_negative_current_exp_rejected(self):
        with pytest.raises(InvalidArgumentError):
            apply_gain(1, -5.0, 10.0)


class TestApplyRemoval:
    """Test the level-down cascade."""

    def test_removal_within_level(self):
        change = apply_removal(2, 500.0, 200.0)

        assert change.new_level == 2
        assert change.new_exp == 300.0
        assert change.levels_lost == 0

    def test_removal_crosses_level_boundary(self):
        change = apply_removal(2, 950.0, 1000.0)

        assert change.new_level == 1
        assert change.new_exp == pytest.approx(950.0)
        assert change.levels_lost == 1

    def test_multi_level_removal(self):
        change = apply_removal(3, 100.0, 2300.0)

        assert change.new_level == 1
        assert change.new_exp == pytest.approx(0.0)
        assert change.levels_lost == 2
        assert change.exp_deficit_discarded == 0.0

    def test_level_one_clamps_and_reports_deficit(self):
        change = apply_removal(1, 50.0, 200.0)

        assert change.new_level == 1
        assert change.new_exp == 0.0
        assert change.exp_deficit_discarded == pytest.approx(150.0)

    def test_removal_to_level_one_discards_rest(self):
        change = apply_removal(2, 0.0, 5000.0)

        assert change.new_level == 1
        assert change.new_exp == 0.0
        assert change.exp_deficit_discarded == pytest.approx(4000.0)

    def test_safety_limit_stops_level_down(self):
        balance = BalanceConfig(max_cascade_iterations=2)

        change = apply_removal(10, 0.0, 1e9, balance)

        assert change.capped_at_safety_limit is True
        assert change.new_level == 8

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidArgumentError):
            apply_removal(2, 0.0, -1.0)


class TestGainRemovalInverse:
    """Removing exactly what was gained restores the starting point."""

    @pytest.mark.parametrize(
        "level, current_exp, amount",
        [
            (1, 0.0, 90.0),
            (1, 950.0, 1000.0),
            (3, 100.0, 5000.0),
            (7, 12.5, 60.0),
        ],
    )
    def test_gain_then_remove_restores_state(self, level, current_exp, amount):
        gained = apply_gain(level, current_exp, amount)
        removed = apply_removal(gained.new_level, gained.new_exp, amount)

        assert removed.new_level == level
        assert removed.new_exp == pytest.approx(current_exp, abs=1e-6)
        assert removed.levels_lost == gained.levels_gained


class TestExpGain:
    """Test the activity-to-EXP rule."""

    def test_one_exp_per_minute(self):
        assert compute_exp_gain(ActivityKind.STUDY_SERIOUS, 90) == 90.0

    def test_fixed_exp_ignores_duration(self):
        assert compute_exp_gain(ActivityKind.QUIT_BAD_HABIT, 5) == 60.0
        assert compute_exp_gain(ActivityKind.QUIT_BAD_HABIT, 600) == 60.0

    def test_accepts_string_kind(self):
        assert compute_exp_gain("meditation", 20) == 20.0

    def test_negative_duration_rejected(self):
        with pytest.raises(InvalidArgumentError):
            compute_exp_gain(ActivityKind.MEDITATION, -1)


class TestDisplayHelpers:
    def test_progress_fraction(self):
        assert exp_progress_fraction(1, 250.0) == 0.25
        assert exp_progress_fraction(1, 5000.0) == 1.0

    def test_exp_to_next_level(self):
        assert exp_to_next_level(1, 400.0) == 600.0

    def test_total_exp_for_level(self):
        assert total_exp_for_level(1) == 0.0
        assert total_exp_for_level(3) == pytest.approx(2200.0)
