"""
Dominant-team classification from league standings.

A team is "dominant" when it wins at least three quarters of its league
matches.  Qualifying teams receive a tier (ultra / strong / moderate) from
their win rate and a 0-100 composite score that also rewards points per
game, goal difference, recent form and clean sheets.  Only dominant teams
feed the accumulator pick assessment.
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple, Union

from backend.core.acca_config import DEFAULT_CONFIG, AccumulatorConfig
from backend.schemas import StandingRow

logger = logging.getLogger(__name__)

DominanceLevel = Literal["ultra", "strong", "moderate", "none"]

StandingInput = Union[StandingRow, Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DominanceProfile:
    """One team's dominance assessment for one season."""

    team_id: str
    team_name: str
    league_id: str
    league_name: str
    dominance_level: DominanceLevel
    dominance_score: float
    win_rate: float
    ppg: float
    goal_difference: int
    home_win_rate: float
    away_win_rate: float
    form_last5: Tuple[str, ...]
    form_score: float
    loss_rate: float
    draw_rate: float
    avg_goals_scored: float
    avg_goals_conceded: float
    clean_sheet_pct: float

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["form_last5"] = list(self.form_last5)
        return data


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------

def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def calculate_form_score(
    form: Sequence[str], config: AccumulatorConfig = DEFAULT_CONFIG
) -> float:
    """Recency-weighted form in [0, 1], most recent result first.

    Normalised by the weight actually used, so a two-match history of
    ``("W", "W")`` scores 1.0 rather than being diluted by missing games.
    """
    if not form:
        return config.empty_form_score
    total_weight = 0.0
    total_score = 0.0
    for weight, result in zip(config.form_weights, form):
        total_score += config.form_points.get(result, 0.0) * weight
        total_weight += weight
    return total_score / total_weight if total_weight > 0 else config.empty_form_score


def classify_dominance(
    win_rate: float, config: AccumulatorConfig = DEFAULT_CONFIG
) -> DominanceLevel:
    """Map a win rate onto a dominance tier (thresholds are inclusive)."""
    if win_rate >= config.ultra_win_rate:
        return "ultra"
    if win_rate >= config.strong_win_rate:
        return "strong"
    if win_rate >= config.moderate_win_rate:
        return "moderate"
    return "none"


def composite_dominance_score(
    win_rate: float,
    ppg: float,
    gd_per_game: float,
    form_score: float,
    clean_sheet_pct: float,
    config: AccumulatorConfig = DEFAULT_CONFIG,
) -> float:
    """Weighted 0-100 dominance score, rounded to one decimal."""
    ppg_norm = _clamp(ppg / config.max_ppg, 0.0, 1.0)
    gd_span = config.gd_ceiling - config.gd_floor
    gd_norm = _clamp((gd_per_game - config.gd_floor) / gd_span, 0.0, 1.0)

    raw = (
        _clamp(win_rate, 0.0, 1.0) * config.weight_win_rate
        + ppg_norm * config.weight_ppg
        + gd_norm * config.weight_goal_difference
        + _clamp(form_score, 0.0, 1.0) * config.weight_form
        + _clamp(clean_sheet_pct, 0.0, 1.0) * config.weight_clean_sheets
    )
    return _clamp(round(raw * 100.0, 1), 0.0, 100.0)


def _to_standing(row: StandingInput) -> StandingRow:
    if isinstance(row, StandingRow):
        return row
    return StandingRow.model_validate(row)


def build_profile(
    standing: StandingRow, config: AccumulatorConfig = DEFAULT_CONFIG
) -> Optional[DominanceProfile]:
    """Profile a single standings row, or ``None`` if it does not qualify."""
    played = standing.played
    if played < config.min_matches_played:
        logger.debug(
            "Skipping %s: %d played < %d", standing.team_name, played, config.min_matches_played
        )
        return None

    win_rate = standing.won / played
    level = classify_dominance(win_rate, config)
    if level == "none":
        return None

    draw_rate = standing.drawn / played
    loss_rate = standing.lost / played
    goal_difference = standing.goals_for - standing.goals_against
    ppg = standing.ppg if standing.ppg else (standing.won * 3 + standing.drawn) / played

    # Venue splits fall back to the overall rate when unknown.
    home_win_rate = standing.venue_win_rate(home=True)
    if home_win_rate is None:
        home_win_rate = win_rate
    away_win_rate = standing.venue_win_rate(home=False)
    if away_win_rate is None:
        away_win_rate = win_rate
    clean_sheet_pct = min(standing.clean_sheets / played, 1.0)
    avg_scored = standing.avg_goals_scored or standing.goals_for / played
    avg_conceded = standing.avg_goals_conceded or standing.goals_against / played

    form_score = calculate_form_score(standing.form_last5, config)
    score = composite_dominance_score(
        win_rate, ppg, goal_difference / played, form_score, clean_sheet_pct, config
    )

    return DominanceProfile(
        team_id=standing.team_id,
        team_name=standing.team_name or "Unknown",
        league_id=standing.league_id,
        league_name=standing.league_name,
        dominance_level=level,
        dominance_score=score,
        win_rate=round(win_rate, 4),
        ppg=round(ppg, 2),
        goal_difference=goal_difference,
        home_win_rate=round(home_win_rate, 4),
        away_win_rate=round(away_win_rate, 4),
        form_last5=standing.form_last5,
        form_score=round(form_score, 4),
        loss_rate=round(loss_rate, 4),
        draw_rate=round(draw_rate, 4),
        avg_goals_scored=round(avg_scored, 2),
        avg_goals_conceded=round(avg_conceded, 2),
        clean_sheet_pct=round(clean_sheet_pct, 4),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def classify_league(
    standings: Iterable[StandingInput], config: AccumulatorConfig = DEFAULT_CONFIG
) -> List[DominanceProfile]:
    """
    Find the dominant teams in one league's standings.

    Args:
        standings: Standings rows for a single league and season, as
            :class:`StandingRow` or raw mappings (validated here).
        config: Tuning constants.

    Returns:
        Profiles of teams reaching at least "moderate" dominance, sorted by
        ``dominance_score`` descending.  Ties keep input order.
    """
    profiles = []
    for row in standings:
        profile = build_profile(_to_standing(row), config)
        if profile is not None:
            profiles.append(profile)
    profiles.sort(key=lambda p: p.dominance_score, reverse=True)
    return profiles


def identify_dominant_teams(
    standings: Iterable[StandingInput], config: AccumulatorConfig = DEFAULT_CONFIG
) -> List[DominanceProfile]:
    """
    Classify a multi-league batch of standings, one league at a time.

    Rows are grouped by ``league_id`` in first-seen order, each league is
    classified independently, and the merged list is sorted by score.
    """
    by_league: Dict[str, List[StandingRow]] = defaultdict(list)
    for row in standings:
        standing = _to_standing(row)
        by_league[standing.league_id].append(standing)

    merged: List[DominanceProfile] = []
    for league_id, rows in by_league.items():
        dominant = classify_league(rows, config)
        logger.debug("League %s: %d/%d teams dominant", league_id, len(dominant), len(rows))
        merged.extend(dominant)

    merged.sort(key=lambda p: p.dominance_score, reverse=True)
    logger.info(
        "Dominance scan: %d dominant teams across %d leagues", len(merged), len(by_league)
    )
    return merged
