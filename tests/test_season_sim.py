"""
Tests for backend/core/season_sim.py

Run with: pytest tests/test_season_sim.py -v
"""

import pytest

from backend.core.acca_config import NO_RECOVERY_SENTINEL
from backend.core.season_sim import (
    expected_longest_losing_streak,
    recovery_bets,
    simulate_accumulator_season,
)


class TestSimulateAccumulatorSeason:
    """Test the closed-form season projection."""

    def test_three_leg_even_money_season(self):
        """0.8^3 = 0.512 over 2 x 38 = 76 combos at odds 2.0."""
        sim = simulate_accumulator_season(0.8, 3, 2.0, 2, 38)

        assert sim.expected_wins == pytest.approx(38.91)
        assert sim.expected_losses == pytest.approx(37.09)
        assert sim.break_even_rate == pytest.approx(0.5)
        # (0.512 * 76 * 2 - 76) / 76 * 100
        assert sim.projected_roi == pytest.approx(2.4)
        assert sim.max_consecutive_losses == 7
        assert sim.recovery_bets_after_loss == 1

    def test_wins_and_losses_sum_to_total(self):
        """Test expected wins and losses cover every combo placed."""
        sim = simulate_accumulator_season(0.83, 4, 2.4, 3, 30)
        assert sim.expected_wins + sim.expected_losses == pytest.approx(90.0)

    def test_leg_probability_is_clamped(self):
        """Test leg probabilities are clamped to [0.01, 0.99]."""
        sim = simulate_accumulator_season(1.0, 1, 2.0, 1, 10)
        assert sim.expected_wins == pytest.approx(9.9)

        sim = simulate_accumulator_season(0.0, 1, 2.0, 1, 10)
        assert sim.expected_wins == pytest.approx(0.1)

    def test_non_positive_odds(self):
        """Test odds of zero give a 1.0 break-even and the recovery sentinel."""
        sim = simulate_accumulator_season(0.8, 3, 0.0, 2, 38)
        assert sim.break_even_rate == 1.0
        assert sim.recovery_bets_after_loss == NO_RECOVERY_SENTINEL

    def test_empty_schedule(self):
        """Test a season with no combos projects nothing."""
        sim = simulate_accumulator_season(0.8, 3, 2.0, 0, 38)
        assert sim.expected_wins == 0
        assert sim.projected_roi == 0.0
        assert sim.max_consecutive_losses == 0

    def test_to_dict_is_plain(self):
        """Test to_dict() exposes every projection field."""
        data = simulate_accumulator_season(0.8, 3, 2.0, 2, 38).to_dict()
        assert set(data) == {
            "expected_wins", "expected_losses", "break_even_rate",
            "projected_roi", "max_consecutive_losses", "recovery_bets_after_loss",
        }


class TestLosingStreak:
    """Test the longest-losing-streak estimate."""

    def test_never_loses(self):
        """Test a combo that never loses has no streak."""
        assert expected_longest_losing_streak(76, 0.0) == 0

    def test_always_loses(self):
        """Test a combo that always loses loses every time."""
        assert expected_longest_losing_streak(76, 1.0) == 76

    def test_single_trial(self):
        """Test one trial has no streak to speak of."""
        assert expected_longest_losing_streak(1, 0.5) == 0

    def test_classical_estimate(self):
        """Test ln(n) / ln(1/q), rounded up."""
        # ln(100) / ln(2) = 6.64
        assert expected_longest_losing_streak(100, 0.5) == 7


class TestRecoveryBets:
    """Test wins needed to recover one lost stake."""

    @pytest.mark.parametrize("odds, expected", [
        (3.0, 1),
        (2.0, 1),
        (1.5, 2),
        (1.25, 4),
        (1.1, 10),
    ])
    def test_wins_needed(self, odds, expected):
        """Test ceil(1 / (odds - 1))."""
        assert recovery_bets(odds) == expected

    @pytest.mark.parametrize("odds", [1.0, 0.5, 0.0])
    def test_no_gain_returns_sentinel(self, odds):
        """Test odds that gain nothing return the sentinel."""
        assert recovery_bets(odds) == NO_RECOVERY_SENTINEL
