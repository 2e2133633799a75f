"""Accumulator tuning constants: every threshold and weight in one place.

This module is the **registry** for the numbers that drive dominance
classification, fixture safety scoring and the combination search.  Nowhere
else in the codebase should a win-rate threshold, a safety modifier or a
pool cap be hard-coded.

Architecture
------------
:class:`AccumulatorConfig` is a frozen dataclass carrying all constants.
Every scoring function accepts a ``config`` argument that defaults to
:data:`DEFAULT_CONFIG`, so alternate tunings can be tested side by side
without touching module state.

Typical usage::

    from backend.core.acca_config import AccumulatorConfig

    cfg = AccumulatorConfig.standard()

    # Override a single constant for an experiment:
    from dataclasses import replace
    strict_cfg = replace(cfg, strong_win_rate=0.88)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Final, Literal, Mapping, Tuple

#: Risk tiers in ascending order of risk.
RiskLevel = Literal["conservative", "moderate", "aggressive"]
RISK_LEVELS: Final[Tuple[str, ...]] = ("conservative", "moderate", "aggressive")
RISK_ORDER: Final[Dict[str, int]] = {level: i for i, level in enumerate(RISK_LEVELS)}

#: Sentinel returned when no finite number of wins recovers a lost stake.
NO_RECOVERY_SENTINEL: Final[int] = 999


@dataclass(frozen=True)
class RiskTierPolicy:
    """Search and sizing limits for a single risk tier.

    Attributes:
        pool_size: Maximum candidates kept before enumeration.
        min_expected_value: Combos with EV below this are rejected.
            ``None`` accepts any EV.
        base_stake_pct: Baseline suggested stake, % of bankroll.
        diversify_leagues: Keep only the best pick per league.
    """

    pool_size: int
    min_expected_value: float | None
    base_stake_pct: float
    diversify_leagues: bool = True


@dataclass(frozen=True)
class DailyTierSchedule:
    """Leg range and safety floor used by the daily builder for one tier."""

    min_legs: int
    max_legs: int
    min_safety: int


def _default_risk_tiers() -> Mapping[str, RiskTierPolicy]:
    return MappingProxyType({
        "conservative": RiskTierPolicy(pool_size=8, min_expected_value=0.0, base_stake_pct=2.0),
        "moderate": RiskTierPolicy(pool_size=10, min_expected_value=-0.10, base_stake_pct=1.0),
        "aggressive": RiskTierPolicy(
            pool_size=15, min_expected_value=None, base_stake_pct=0.5, diversify_leagues=False
        ),
    })


def _default_daily_tiers() -> Mapping[str, DailyTierSchedule]:
    return MappingProxyType({
        "conservative": DailyTierSchedule(min_legs=2, max_legs=3, min_safety=80),
        "moderate": DailyTierSchedule(min_legs=3, max_legs=4, min_safety=70),
        "aggressive": DailyTierSchedule(min_legs=3, max_legs=6, min_safety=60),
    })


@dataclass(frozen=True)
class AccumulatorConfig:
    """Immutable configuration bundle for the accumulator engine.

    Grouped by the component that consumes each constant.  Override via
    :func:`dataclasses.replace`.

    Attributes:
        --- Dominance classifier ---
        min_matches_played: Standings rows below this sample are excluded.
        ultra_win_rate / strong_win_rate / moderate_win_rate: Inclusive
            win-rate floors for each dominance level.
        form_weights: Recency weights, most recent result first.  The first
            weight is 2.5x the fifth.
        form_points: Score for each result letter.
        empty_form_score: Form score when no results are known.
        weight_*: Composite dominance score weights (sum to 1.0).
        max_ppg: Points-per-game normaliser.
        gd_floor / gd_ceiling: Per-game goal difference range mapped
            onto [0, 1].

        --- Fixture safety scorer ---
        safety_base: Starting safety before modifiers.
        home_advantage ... away_weakness_bonus: Additive modifiers.
        max_injury_penalties: Cap on counted key absences.
        weather_*: Thresholds above which weather counts as adverse.
        default_opponent_position / default_league_size: Used when the
            opponent's standings row is missing.
        outright_min_safety / double_chance_min_safety: Market tiers.
        reference_legs / value_margin: Min-odds break-even reference
            (a 4-leg accumulator with 5% margin).

        --- Combination search ---
        leg_prob_base / leg_prob_slope / leg_prob_floor / leg_prob_ceiling:
            Safety → per-leg win probability calibration.
        bookmaker_margin: Assumed margin when estimating missing odds.
        max_enumerated_combinations: Above this C(n, k) the greedy
            neighbourhood search is used.
        greedy_max_results: Cap on greedy candidates per leg count.
        risk_tiers: :class:`RiskTierPolicy` per tier.
        strong_ev / moderate_ev: EV thresholds for stake scaling.
        strong_ev_stake_mult / moderate_ev_stake_mult: Stake multipliers.
        min_stake_pct / max_stake_pct: Stake clamp, % of bankroll.

        --- Season simulator ---
        combos_per_week / weeks_in_season: Betting schedule assumed when
            a simulation is attached to each combo.

        --- Daily builder ---
        daily_tiers: :class:`DailyTierSchedule` per tier.
    """

    # Dominance classifier
    min_matches_played: int = 5
    ultra_win_rate: float = 0.92
    strong_win_rate: float = 0.85
    moderate_win_rate: float = 0.75
    form_weights: Tuple[float, ...] = (1.0, 0.85, 0.70, 0.55, 0.40)
    form_points: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({"W": 1.0, "D": 0.35, "L": 0.0}),
        hash=False,
    )
    empty_form_score: float = 0.5
    weight_win_rate: float = 0.40
    weight_ppg: float = 0.20
    weight_goal_difference: float = 0.15
    weight_form: float = 0.15
    weight_clean_sheets: float = 0.10
    max_ppg: float = 3.0
    gd_floor: float = -1.0
    gd_ceiling: float = 3.0

    # Fixture safety scorer
    safety_base: int = 60
    home_advantage: int = 10
    form_loss_penalty: int = -20
    form_draw_penalty: int = -8
    recent_form_window: int = 3
    opponent_top3_penalty: int = -18
    opponent_top6_penalty: int = -10
    opponent_bottom_half_bonus: int = 6
    opponent_bottom3_bonus: int = 12
    opponent_relegation_bonus: int = 15
    congestion_penalty: int = -15
    congestion_fixtures_7d: int = 3
    congestion_min_rest_days: int = 3
    key_injury_penalty: int = -10
    max_injury_penalties: int = 3
    bad_weather_penalty: int = -5
    weather_impact_threshold: float = 0.5
    weather_rain_mm_threshold: float = 5.0
    weather_wind_threshold: float = 12.0
    prediction_high_bonus: int = 8
    prediction_medium_bonus: int = 4
    ultra_dominance_bonus: int = 8
    strong_dominance_bonus: int = 4
    clean_sheet_bonus: int = 5
    clean_sheet_threshold: float = 0.5
    away_weakness_bonus: int = 6
    venue_weakness_threshold: float = 0.25
    default_opponent_position: int = 10
    default_league_size: int = 20
    outright_min_safety: int = 65
    double_chance_min_safety: int = 50
    over_15_goal_rate: float = 1.5
    reference_legs: int = 4
    value_margin: float = 0.05

    # Combination search
    leg_prob_base: float = 0.5
    leg_prob_slope: float = 0.45
    leg_prob_floor: float = 0.5
    leg_prob_ceiling: float = 0.97
    bookmaker_margin: float = 0.05
    max_enumerated_combinations: int = 5000
    greedy_max_results: int = 100
    risk_tiers: Mapping[str, RiskTierPolicy] = field(
        default_factory=_default_risk_tiers, hash=False
    )
    strong_ev: float = 0.15
    moderate_ev: float = 0.05
    strong_ev_stake_mult: float = 1.3
    moderate_ev_stake_mult: float = 1.1
    min_stake_pct: float = 0.25
    max_stake_pct: float = 3.0

    # Season simulator
    combos_per_week: float = 2.0
    weeks_in_season: float = 38.0

    # Daily builder
    daily_tiers: Mapping[str, DailyTierSchedule] = field(
        default_factory=_default_daily_tiers, hash=False
    )

    def __post_init__(self) -> None:
        # Overrides passed as plain dicts are frozen too.
        for name in ("form_points", "risk_tiers", "daily_tiers"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))

    # ------------------------------------------------------------------ #
    #  Named constructors                                                  #
    # ------------------------------------------------------------------ #

    @classmethod
    def standard(cls) -> AccumulatorConfig:
        """Return the production tuning (20-team domestic leagues)."""
        return cls()

    # ------------------------------------------------------------------ #
    #  Convenience accessors                                               #
    # ------------------------------------------------------------------ #

    def tier(self, risk_level: str) -> RiskTierPolicy:
        """Return the policy for ``risk_level``.

        Raises:
            ValueError: If ``risk_level`` is not a known tier.
        """
        try:
            return self.risk_tiers[risk_level]
        except KeyError:
            raise ValueError(
                f"Unknown risk level {risk_level!r}; expected one of {RISK_LEVELS}."
            ) from None

    def for_schedule(self, combos_per_week: float, weeks_in_season: float) -> AccumulatorConfig:
        """Return a copy simulating a different betting schedule.

        Examples::

            cup_cfg = AccumulatorConfig.standard().for_schedule(1, 20)
            assert cup_cfg.weeks_in_season == 20
        """
        return replace(self, combos_per_week=combos_per_week, weeks_in_season=weeks_in_season)

    def __repr__(self) -> str:
        return (
            f"AccumulatorConfig(thresholds=({self.ultra_win_rate}, "
            f"{self.strong_win_rate}, {self.moderate_win_rate}), "
            f"safety_base={self.safety_base}, "
            f"schedule={self.combos_per_week}x{self.weeks_in_season})"
        )


#: Shared default instance.  Frozen with read-only mappings, so safe as a default argument.
DEFAULT_CONFIG: Final[AccumulatorConfig] = AccumulatorConfig.standard()
