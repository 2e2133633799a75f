"""
Tests for acca_config.py

Run with: pytest tests/test_acca_config.py -v
"""

from dataclasses import FrozenInstanceError, replace

import pytest

from backend.core.acca_config import (
    DEFAULT_CONFIG,
    RISK_LEVELS,
    AccumulatorConfig,
    RiskTierPolicy,
)


class TestImmutability:
    """The shared default config cannot be changed by callers."""

    def test_scalar_fields_frozen(self):
        """Assigning a threshold raises."""
        with pytest.raises(FrozenInstanceError):
            DEFAULT_CONFIG.safety_base = 50

    @pytest.mark.parametrize("name, key", [
        ("risk_tiers", "moderate"),
        ("daily_tiers", "aggressive"),
        ("form_points", "W"),
    ])
    def test_mappings_are_read_only(self, name, key):
        """Tier and form tables reject item assignment."""
        with pytest.raises(TypeError):
            getattr(DEFAULT_CONFIG, name)[key] = None

    def test_config_is_hashable(self):
        """Equal configs hash equally."""
        assert hash(DEFAULT_CONFIG) == hash(AccumulatorConfig.standard())

    def test_dict_override_is_frozen(self):
        """A plain dict passed through replace() is wrapped read-only."""
        tiers = {"moderate": RiskTierPolicy(pool_size=4, min_expected_value=None, base_stake_pct=1.0)}
        cfg = replace(DEFAULT_CONFIG, risk_tiers=tiers)

        tiers["moderate"] = None
        assert cfg.tier("moderate").pool_size == 4
        with pytest.raises(TypeError):
            cfg.risk_tiers["moderate"] = None
        assert DEFAULT_CONFIG.tier("moderate").pool_size == 10


class TestTierLookup:
    """Test risk tier and schedule accessors."""

    def test_every_level_has_a_policy(self):
        """Each risk level resolves to a policy and a daily schedule."""
        for level in RISK_LEVELS:
            assert DEFAULT_CONFIG.tier(level).pool_size > 0
            assert DEFAULT_CONFIG.daily_tiers[level].min_legs >= 2

    def test_unknown_level(self):
        """Unknown tiers raise ValueError naming the valid ones."""
        with pytest.raises(ValueError, match="conservative"):
            DEFAULT_CONFIG.tier("reckless")

    def test_for_schedule(self):
        """for_schedule() returns a copy; the default is untouched."""
        cup = DEFAULT_CONFIG.for_schedule(1, 20)
        assert (cup.combos_per_week, cup.weeks_in_season) == (1, 20)
        assert DEFAULT_CONFIG.weeks_in_season == 38.0
