"""
Tests for backend/core/odds_math.py

Run with: pytest tests/test_odds_math.py -v
"""

import math

import pytest

from backend.core.odds_math import (
    decimal_to_american,
    fair_decimal_odds,
    implied_prob,
    is_valid_decimal_odds,
    min_odds_per_leg,
)


class TestIsValidDecimalOdds:
    """Test the decimal-odds validity rule."""

    @pytest.mark.parametrize("odds, expected", [
        (1.01, True),
        (2.5, True),
        ("1.8", True),
        (1.0, False),
        (0.95, False),
        (0, False),
        (-2.0, False),
        (None, False),
        ("abc", False),
        (float("inf"), False),
        (float("nan"), False),
    ])
    def test_validity(self, odds, expected):
        """Test only finite prices above 1.0 are valid."""
        assert is_valid_decimal_odds(odds) is expected


class TestImpliedProb:
    """Test raw implied probability."""

    def test_even_money(self):
        """Test 2.0 implies 50%."""
        assert implied_prob(2.0) == pytest.approx(0.5)

    def test_short_price(self):
        """Test 1.25 implies 80%."""
        assert implied_prob(1.25) == pytest.approx(0.8)

    def test_rejects_unit_odds(self):
        """Test 1.0 is not a price."""
        with pytest.raises(ValueError):
            implied_prob(1.0)


class TestFairDecimalOdds:
    """Test margin-shaded fair odds."""

    def test_default_margin(self):
        """Test the default 5% margin."""
        assert fair_decimal_odds(0.80) == pytest.approx(1.0 / (0.80 * 0.95))

    def test_zero_margin_is_reciprocal(self):
        """Test zero margin gives 1/p."""
        assert fair_decimal_odds(0.80, 0.0) == pytest.approx(1.25)

    @pytest.mark.parametrize("prob", [0.0, -0.1, 1.5])
    def test_rejects_bad_probability(self, prob):
        """Test probabilities outside (0, 1] are rejected."""
        with pytest.raises(ValueError):
            fair_decimal_odds(prob)

    def test_rejects_bad_margin(self):
        """Test a margin of 100% is rejected."""
        with pytest.raises(ValueError):
            fair_decimal_odds(0.5, 1.0)


class TestMinOddsPerLeg:
    """Test per-leg break-even odds."""

    def test_reference_values(self):
        """Test known values for 4-leg combos."""
        assert min_odds_per_leg(0.80, 4) == pytest.approx(1.2654, abs=1e-4)
        assert min_odds_per_leg(0.95, 4) == pytest.approx(1.0655, abs=1e-4)

    def test_above_pure_break_even(self):
        """The margin pushes the threshold above 1/p."""
        for prob in (0.5, 0.7, 0.9, 0.99):
            assert min_odds_per_leg(prob, 4) > 1.0 / prob

    def test_equals_margin_root_over_prob(self):
        """Test the closed form (1 + margin)^(1/legs) / p."""
        assert min_odds_per_leg(0.85, 4, 0.05) == pytest.approx(1.05 ** 0.25 / 0.85)

    def test_decreases_as_probability_rises(self):
        """Test safer legs need shorter prices."""
        values = [min_odds_per_leg(p, 4) for p in (0.5, 0.6, 0.7, 0.8, 0.9)]
        assert values == sorted(values, reverse=True)

    @pytest.mark.parametrize("prob, legs", [(0.0, 4), (1.0, 4), (1.2, 4), (0.8, 0)])
    def test_degenerate_inputs_are_infinite(self, prob, legs):
        """Test impossible inputs give infinity rather than raising."""
        assert math.isinf(min_odds_per_leg(prob, legs))


class TestDecimalToAmerican:
    """Test American odds display conversion."""

    def test_underdog(self):
        """Test prices above 2.0 become positive American odds."""
        assert decimal_to_american(2.5) == 150

    def test_favourite(self):
        """Test prices below 2.0 become negative American odds."""
        assert decimal_to_american(1.5) == -200

    def test_rejects_invalid(self):
        """Test invalid prices raise ValueError."""
        with pytest.raises(ValueError):
            decimal_to_american(1.0)
