"""
Tests for dominance.py

Run with: pytest tests/test_dominance.py -v
"""

from dataclasses import replace

import pytest
from pydantic import ValidationError

from backend.core.acca_config import DEFAULT_CONFIG
from backend.schemas import StandingRow
from backend.services.dominance import (
    build_profile,
    calculate_form_score,
    classify_dominance,
    classify_league,
    composite_dominance_score,
    identify_dominant_teams,
)


def _make_standing(team_id="t1", played=10, won=9, drawn=1, lost=0, **overrides):
    data = {
        "team_id": team_id,
        "team_name": f"Team {team_id}",
        "league_id": "L1",
        "league_name": "Premiership",
        "played": played,
        "won": won,
        "drawn": drawn,
        "lost": lost,
    }
    data.update(overrides)
    return StandingRow.model_validate(data)


class TestFormScore:
    """Test recency-weighted form scoring."""

    def test_empty_form_is_neutral(self):
        """Test no results gives the neutral 0.5."""
        assert calculate_form_score(()) == pytest.approx(0.5)

    def test_perfect_form(self):
        """Test five wins score 1.0."""
        assert calculate_form_score(("W",) * 5) == pytest.approx(1.0)

    def test_short_history_not_diluted(self):
        """Test short histories are normalised by the weights used."""
        assert calculate_form_score(("W", "W")) == pytest.approx(1.0)

    def test_recent_results_weigh_more(self):
        """Test a recent loss costs more than an old one."""
        recent_loss = calculate_form_score(("L", "W", "W", "W", "W"))
        old_loss = calculate_form_score(("W", "W", "W", "W", "L"))
        assert recent_loss < old_loss

    def test_mixed_form(self):
        """Test draws and losses against the weight sum."""
        # (1.0 * 1.0 + 0.0 * 0.85) / 1.85
        assert calculate_form_score(("W", "L")) == pytest.approx(1.0 / 1.85)
        assert calculate_form_score(("D",)) == pytest.approx(0.35)


class TestClassifyDominance:
    """Test win-rate threshold classification."""

    @pytest.mark.parametrize("win_rate, expected", [
        (1.0, "ultra"),
        (0.92, "ultra"),
        (0.9199, "strong"),
        (0.9, "strong"),
        (0.85, "strong"),
        (0.8499, "moderate"),
        (0.75, "moderate"),
        (0.7499, "none"),
        (0.0, "none"),
    ])
    def test_thresholds_are_inclusive(self, win_rate, expected):
        """Test level floors are inclusive."""
        assert classify_dominance(win_rate) == expected

    def test_alternate_tuning(self):
        """Test thresholds come from the config."""
        strict = replace(DEFAULT_CONFIG, strong_win_rate=0.95, ultra_win_rate=0.98)
        assert classify_dominance(0.9, strict) == "moderate"


class TestCompositeScore:
    """Test the weighted 0-100 dominance score."""

    def test_perfect_team_scores_100(self):
        """Test a perfect record scores 100."""
        assert composite_dominance_score(1.0, 3.0, 3.0, 1.0, 1.0) == pytest.approx(100.0)

    def test_inputs_are_clamped(self):
        """Test out-of-range inputs are clamped."""
        assert composite_dominance_score(1.5, 9.0, 10.0, 2.0, 3.0) == pytest.approx(100.0)
        assert composite_dominance_score(0.0, 0.0, -5.0, 0.0, 0.0) == pytest.approx(0.0)

    def test_rounded_to_one_decimal(self):
        """Test the score is rounded to one decimal."""
        score = composite_dominance_score(0.9, 2.9, 0.0, 1.0, 0.0)
        assert score == round(score, 1)


class TestBuildProfile:
    """Test profiling a single standings row."""

    def test_nine_of_ten_is_strong_not_ultra(self):
        """0.9 sits below the 0.92 ultra floor."""
        standing = _make_standing(ppg=2.9, form_last5="WWWWW")
        profile = build_profile(standing)

        assert profile is not None
        assert profile.dominance_level == "strong"
        assert profile.win_rate == pytest.approx(0.9)
        # 100 * (0.36 + 0.2 * 2.9/3 + 0.15 * 0.25 + 0.15 * 1.0 + 0)
        assert profile.dominance_score == pytest.approx(74.1)

    def test_small_sample_excluded(self):
        """Test teams below the minimum sample are excluded."""
        assert build_profile(_make_standing(played=4, won=4, drawn=0)) is None

    def test_non_dominant_excluded(self):
        """Test teams below the moderate floor are excluded."""
        assert build_profile(_make_standing(won=7, drawn=2, lost=1)) is None

    def test_ppg_fallback(self):
        """Test ppg is derived from results when not supplied."""
        profile = build_profile(_make_standing())
        assert profile.ppg == pytest.approx(2.8)

    def test_venue_rates_fall_back_to_overall(self):
        """Test missing venue splits use the overall win rate."""
        profile = build_profile(_make_standing())
        assert profile.home_win_rate == pytest.approx(0.9)
        assert profile.away_win_rate == pytest.approx(0.9)

    def test_venue_rates_from_splits(self):
        """Test venue rates derived from home/away splits."""
        profile = build_profile(
            _make_standing(home_played=5, home_won=5, away_played=5, away_won=4)
        )
        assert profile.home_win_rate == pytest.approx(1.0)
        assert profile.away_win_rate == pytest.approx(0.8)

    def test_average_goals_fallback(self):
        """Test goal averages are derived from totals."""
        profile = build_profile(_make_standing(goals_for=25, goals_against=6))
        assert profile.avg_goals_scored == pytest.approx(2.5)
        assert profile.avg_goals_conceded == pytest.approx(0.6)
        assert profile.goal_difference == 19

    def test_clean_sheet_pct_capped(self):
        """Test clean sheet share never exceeds 1.0."""
        profile = build_profile(_make_standing(clean_sheets=14))
        assert profile.clean_sheet_pct == pytest.approx(1.0)

    def test_outcome_rates_sum_to_one(self):
        """Test win, draw and loss rates add up."""
        profile = build_profile(_make_standing(played=27, won=21, drawn=4, lost=2))
        total = profile.win_rate + profile.draw_rate + profile.loss_rate
        assert total == pytest.approx(1.0, abs=1e-3)

    def test_score_in_range(self):
        """Test score and form stay in range."""
        profile = build_profile(
            _make_standing(goals_for=40, goals_against=3, clean_sheets=9, form_last5="WWWWD")
        )
        assert 0.0 <= profile.dominance_score <= 100.0
        assert 0.0 <= profile.form_score <= 1.0

    def test_to_dict_lists_form(self):
        """Test form serialises as a list."""
        profile = build_profile(_make_standing(form_last5="WWD"))
        assert profile.to_dict()["form_last5"] == ["W", "W", "D"]


class TestClassifyLeague:
    """Test single-league classification."""

    def test_sorted_by_score(self):
        """Test dominant teams are ranked by score."""
        rows = [
            _make_standing("a", won=8, drawn=1, lost=1),
            _make_standing("b", won=10, drawn=0, lost=0, goals_for=30),
            _make_standing("c", won=3, drawn=3, lost=4),
            _make_standing("d", won=9, drawn=1, lost=0),
        ]
        profiles = classify_league(rows)

        assert [p.team_id for p in profiles] == ["b", "d", "a"]
        scores = [p.dominance_score for p in profiles]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_input_order(self):
        """Test equal scores keep input order."""
        rows = [_make_standing("x"), _make_standing("y")]
        assert [p.team_id for p in classify_league(rows)] == ["x", "y"]

    def test_accepts_raw_mappings(self):
        """Test raw mappings are validated on the way in."""
        rows = [{"team_id": 7, "played": "10", "won": "10", "drawn": None, "lost": 0}]
        profiles = classify_league(rows)
        assert profiles[0].team_id == "7"
        assert profiles[0].dominance_level == "ultra"

    def test_empty_league(self):
        """Test an empty table gives no profiles."""
        assert classify_league([]) == []

    @pytest.mark.parametrize("ppg", [float("nan"), float("inf")])
    def test_non_finite_ppg_never_reaches_a_profile(self, ppg):
        """Test a NaN or infinite ppg is rejected before profiling."""
        with pytest.raises(ValidationError):
            classify_league([{"team_id": "a", "played": 10, "won": 9, "ppg": ppg}])


class TestIdentifyDominantTeams:
    """Test multi-league classification."""

    def test_merges_leagues_by_score(self):
        """Test each league is classified and results merged by score."""
        rows = [
            _make_standing("a", league_id="SCO", won=9, drawn=1, lost=0),
            _make_standing("b", league_id="SCO", won=4, drawn=3, lost=3),
            _make_standing("c", league_id="GER", won=10, drawn=0, lost=0, goals_for=35),
            _make_standing("d", league_id="GER", won=8, drawn=1, lost=1),
        ]
        profiles = identify_dominant_teams(rows)

        assert [p.team_id for p in profiles] == ["c", "a", "d"]
        assert {p.league_id for p in profiles} == {"SCO", "GER"}
