"""
Fixture safety scoring for accumulator legs.

Given a dominant team's upcoming fixture and whatever context is available
(opponent standings, odds, an independent prediction, weather, injuries),
produce a 0-100 "safety" rating, a recommended market and the minimum odds
worth taking.

The safety score is additive: start at 60 and apply each modifier whose
condition fires.  Every modifier that works against the pick is recorded as
a human-readable risk factor so the reasoning survives into the UI.  Any
missing optional input contributes nothing (neutral) rather than failing.

Minimum odds
------------
The threshold is the per-leg price at which a **4-leg** accumulator of
equally likely legs clears break-even by 5%.  The reference leg count is
fixed on purpose: it gives every pick a comparable value line no matter
which combo it later joins.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from backend.core.acca_config import DEFAULT_CONFIG, AccumulatorConfig
from backend.core.odds_math import min_odds_per_leg
from backend.schemas import (
    FixtureRow,
    InjuryRow,
    OddsRow,
    PredictionRow,
    StandingRow,
    WeatherRow,
)
from backend.services.dominance import DominanceProfile

logger = logging.getLogger(__name__)

Market = Literal["home_win", "away_win", "double_chance", "over_05", "over_15"]
Confidence = Literal["very_high", "high", "medium"]


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AccumulatorPick:
    """One dominant team's assessment for one upcoming fixture."""

    fixture_id: str
    team_id: str
    team_name: str
    opponent_name: str
    league_id: str
    league_name: str
    match_date: Optional[datetime]
    is_home: bool
    dominance_score: float
    opponent_position: int
    opponent_zone: Optional[str]
    safety_score: int
    risk_factors: Tuple[str, ...]
    recommended_market: Market
    min_odds_threshold: float
    current_odds: Optional[float]
    is_value: bool
    confidence: Confidence

    @property
    def league_key(self) -> str:
        """League identity used for diversification."""
        return self.league_id or self.league_name

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["risk_factors"] = list(self.risk_factors)
        data["match_date"] = self.match_date.isoformat() if self.match_date else None
        return data


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def infer_opponent_zone(position: int, league_size: int) -> Optional[str]:
    """League-table zone for a position, or ``None`` when size is unknown."""
    if league_size <= 0:
        return None
    relative = position / league_size
    if relative <= 0.15:
        return "champion"
    if relative <= 0.25:
        return "cl_qualify"
    if relative <= 0.35:
        return "el_qualify"
    if relative <= 0.65:
        return "mid_table"
    if relative <= 0.80:
        return "relegation_playoff"
    return "relegation"


def estimate_match_win_prob(
    profile: DominanceProfile,
    is_home: bool,
    opponent_position: int,
    league_size: int,
    prediction_confidence: Optional[float],
) -> float:
    """
    Single-match win probability for the dominant side.

    Blends overall and venue win rates (40/60), scales by opponent strength,
    then mixes in 30% of the prediction confidence when one is available.
    Clamped to [0.30, 0.99].
    """
    venue_rate = profile.home_win_rate if is_home else profile.away_win_rate
    prob = profile.win_rate * 0.4 + venue_rate * 0.6

    if league_size > 0:
        strength = opponent_position / league_size
        if strength > 0.7:
            prob = min(1.0, prob * 1.05)
        elif strength > 0.5:
            pass
        elif strength > 0.2:
            prob *= 0.95
        else:
            prob *= 0.88

    if prediction_confidence is not None and prediction_confidence > 0:
        prob = prob * 0.7 + (prediction_confidence / 100.0) * 0.3

    return _clamp(prob, 0.30, 0.99)


def market_win_prob(match_prob: float, market: str, profile: DominanceProfile) -> float:
    """Adjust the outright win probability for the recommended market."""
    if market == "double_chance":
        return min(0.99, match_prob + profile.draw_rate * 0.8)
    if market == "over_15":
        return min(0.99, 0.8 + profile.avg_goals_scored * 0.05)
    if market == "over_05":
        return min(0.99, 0.92 + profile.avg_goals_scored * 0.02)
    return match_prob


def select_market(
    safety: int,
    is_home: bool,
    profile: DominanceProfile,
    config: AccumulatorConfig = DEFAULT_CONFIG,
) -> Market:
    if safety >= config.outright_min_safety:
        return "home_win" if is_home else "away_win"
    if safety >= config.double_chance_min_safety:
        return "double_chance"
    return "over_15" if profile.avg_goals_scored > config.over_15_goal_rate else "over_05"


def market_odds(odds: Optional[OddsRow], market: str, is_home: bool) -> Optional[float]:
    """Current decimal odds for ``market`` on the dominant side, if quoted."""
    if odds is None:
        return None
    if market == "home_win":
        return odds.best_home_odds
    if market == "away_win":
        return odds.best_away_odds
    if market == "double_chance":
        return odds.double_chance_home_draw if is_home else odds.double_chance_draw_away
    if market == "over_15":
        return odds.over_15_odds
    if market == "over_05":
        return odds.over_05_odds
    return None


def _has_congestion(fixture: FixtureRow, config: AccumulatorConfig) -> bool:
    if fixture.fixture_congestion_7d >= config.congestion_fixtures_7d:
        return True
    if fixture.has_midweek_european:
        return True
    rest = fixture.days_since_last_match
    return rest is not None and rest < config.congestion_min_rest_days


def _is_adverse_weather(weather: WeatherRow, config: AccumulatorConfig) -> bool:
    return (
        weather.weather_impact_score > config.weather_impact_threshold
        or weather.pre_rain_mm > config.weather_rain_mm_threshold
        or weather.pre_wind_speed > config.weather_wind_threshold
    )


# ---------------------------------------------------------------------------
# Safety scoring
# ---------------------------------------------------------------------------

def _score_safety(
    fixture: FixtureRow,
    profile: DominanceProfile,
    is_home: bool,
    opponent: Optional[StandingRow],
    opponent_position: int,
    league_size: int,
    prediction: Optional[PredictionRow],
    weather: Optional[WeatherRow],
    injuries: Sequence[InjuryRow],
    config: AccumulatorConfig,
) -> Tuple[int, List[str]]:
    risk_factors: List[str] = []
    safety = config.safety_base

    # 1. Home advantage
    if is_home:
        safety += config.home_advantage

    # 2. Recent form (loss and draw penalties stack)
    recent = profile.form_last5[: config.recent_form_window]
    if "L" in recent:
        safety += config.form_loss_penalty
        risk_factors.append(f"Loss in last {config.recent_form_window} matches")
    if "D" in recent:
        safety += config.form_draw_penalty
        risk_factors.append(f"Draw in last {config.recent_form_window} matches")

    # 3. Opponent strength by relative league position
    if league_size > 0:
        relative = opponent_position / league_size
        if relative <= 0.15:
            safety += config.opponent_top3_penalty
            risk_factors.append(f"Opponent in top 3 (pos {opponent_position})")
        elif relative <= 0.30:
            safety += config.opponent_top6_penalty
            risk_factors.append(f"Opponent in top 6 (pos {opponent_position})")
        elif relative <= 0.50:
            pass
        elif relative <= 0.70:
            safety += config.opponent_bottom_half_bonus
        elif relative <= 0.85:
            safety += config.opponent_bottom3_bonus
        else:
            safety += config.opponent_relegation_bonus

    # 4. Fixture congestion
    if _has_congestion(fixture, config):
        safety += config.congestion_penalty
        risk_factors.append("Fixture congestion or midweek European match")

    # 5. Key absences
    key_absences = [inj for inj in injuries if inj.is_key_player and inj.rules_out]
    if key_absences:
        counted = min(len(key_absences), config.max_injury_penalties)
        safety += counted * config.key_injury_penalty
        risk_factors.append(f"{len(key_absences)} key player(s) injured/doubtful")

    # 6. Weather
    if weather is not None and _is_adverse_weather(weather, config):
        safety += config.bad_weather_penalty
        risk_factors.append("Adverse weather conditions")

    # 7. Independent prediction agreement
    if prediction is not None:
        relevant = prediction.home_win_prob if is_home else prediction.away_win_prob
        if relevant > 70 and prediction.confidence_score > 60:
            safety += config.prediction_high_bonus
        elif relevant > 55 and prediction.confidence_score > 40:
            safety += config.prediction_medium_bonus

    # 8. Dominance tier
    if profile.dominance_level == "ultra":
        safety += config.ultra_dominance_bonus
    elif profile.dominance_level == "strong":
        safety += config.strong_dominance_bonus

    # 9. Clean sheets
    if profile.clean_sheet_pct > config.clean_sheet_threshold:
        safety += config.clean_sheet_bonus

    # 10. Opponent weak at this venue (away record when we host, home record when we travel)
    if opponent is not None:
        opp_rate = opponent.venue_win_rate(home=not is_home)
        if opp_rate is not None and opp_rate < config.venue_weakness_threshold:
            safety += config.away_weakness_bonus

    return int(_clamp(round(safety), 0, 100)), risk_factors


def assess_accumulator_pick(
    fixture: FixtureRow,
    profile: DominanceProfile,
    opponent: Optional[StandingRow] = None,
    odds: Optional[OddsRow] = None,
    prediction: Optional[PredictionRow] = None,
    weather: Optional[WeatherRow] = None,
    injuries: Sequence[InjuryRow] = (),
    config: AccumulatorConfig = DEFAULT_CONFIG,
) -> AccumulatorPick:
    """
    Assess a dominant team's fixture as an accumulator leg.

    Args:
        fixture: The upcoming fixture.  The dominant side is home when
            ``profile.team_id == fixture.home_team_id``.
        profile: The dominant team's :class:`DominanceProfile`.
        opponent: Opponent standings, or ``None`` (treated as 10th of 20).
        odds: Best available odds, or ``None``.
        prediction: Independent prediction (0-100 scale), or ``None``.
        weather: Pre-match weather, or ``None``.
        injuries: Availability records for the dominant team's squad.
        config: Tuning constants.

    Returns:
        An :class:`AccumulatorPick`.  ``safety_score`` is an integer in
        [0, 100] and ``min_odds_threshold`` is finite and > 1.
    """
    is_home = profile.team_id == fixture.home_team_id
    opponent_name = fixture.away_team_name if is_home else fixture.home_team_name

    if opponent is not None:
        opponent_position = opponent.position or config.default_opponent_position
        league_size = (
            opponent.league_size
            if opponent.league_size is not None
            else config.default_league_size
        )
        zone = opponent.zone
    else:
        opponent_position = config.default_opponent_position
        league_size = config.default_league_size
        zone = None
    if league_size <= 0:
        opponent_zone = None
    else:
        opponent_zone = zone or infer_opponent_zone(opponent_position, league_size)

    safety, risk_factors = _score_safety(
        fixture, profile, is_home, opponent, opponent_position, league_size,
        prediction, weather, injuries, config,
    )

    market = select_market(safety, is_home, profile, config)

    confidence_score = prediction.confidence_score if prediction is not None else None
    match_prob = estimate_match_win_prob(
        profile, is_home, opponent_position, league_size, confidence_score
    )
    leg_prob = market_win_prob(match_prob, market, profile)
    min_odds = round(
        min_odds_per_leg(leg_prob, config.reference_legs, config.value_margin), 3
    )

    current_odds = market_odds(odds, market, is_home)
    is_value = current_odds is not None and current_odds > min_odds

    if safety >= 80 and profile.dominance_level == "ultra":
        confidence: Confidence = "very_high"
    elif safety >= 70:
        confidence = "high"
    else:
        confidence = "medium"

    logger.debug(
        "%s vs %s: safety=%d market=%s min_odds=%.3f odds=%s risks=%s",
        profile.team_name, opponent_name, safety, market, min_odds,
        current_odds, risk_factors,
    )

    return AccumulatorPick(
        fixture_id=fixture.fixture_id,
        team_id=profile.team_id,
        team_name=profile.team_name,
        opponent_name=opponent_name,
        league_id=profile.league_id,
        league_name=profile.league_name,
        match_date=fixture.match_date,
        is_home=is_home,
        dominance_score=profile.dominance_score,
        opponent_position=opponent_position,
        opponent_zone=opponent_zone,
        safety_score=safety,
        risk_factors=tuple(risk_factors),
        recommended_market=market,
        min_odds_threshold=min_odds,
        current_odds=current_odds,
        is_value=is_value,
        confidence=confidence,
    )
