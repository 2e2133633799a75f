"""Closed-form season projection for a repeated accumulator strategy.

Pure module: no I/O, no logging.  Answers "if I place this kind of combo
every week for a season, what happens?" without Monte Carlo draws, so the
result is deterministic and cheap enough to attach to every candidate the
combination search produces.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Dict

from backend.core.acca_config import NO_RECOVERY_SENTINEL


@dataclass(frozen=True)
class SeasonSimulation:
    """Season-level outcome projection for one combo profile."""

    expected_wins: float
    expected_losses: float
    break_even_rate: float
    projected_roi: float
    max_consecutive_losses: int
    recovery_bets_after_loss: int

    def to_dict(self) -> Dict:
        return asdict(self)


def expected_longest_losing_streak(total_combos: float, lose_prob: float) -> int:
    """Expected longest run of consecutive losses in ``total_combos`` trials.

    Uses the classical estimate ``ln(n) / ln(1/q)``, rounded up.

    Edge cases:
        * ``q ≤ 0`` → 0 (a combo never loses).
        * ``q ≥ 1`` → ``n`` (every combo loses).
        * ``n ≤ 1`` → 0 when ``q < 1`` (``ln(1) = 0``; no streak to speak of).
    """
    if lose_prob <= 0.0:
        return 0
    if lose_prob >= 1.0:
        return max(0, int(math.ceil(total_combos)))
    if total_combos <= 1:
        return 0
    return int(math.ceil(math.log(total_combos) / math.log(1.0 / lose_prob)))


def recovery_bets(avg_total_odds: float) -> int:
    """Winning combos needed to recover one lost unit stake.

    Each win nets ``odds − 1`` units, so ``ceil(1 / (odds − 1))`` wins are
    needed.  Returns :data:`NO_RECOVERY_SENTINEL` when a win gains nothing.
    """
    net_gain_per_win = avg_total_odds - 1.0
    if net_gain_per_win <= 0.0:
        return NO_RECOVERY_SENTINEL
    # Rounding guards float noise such as 1 / 0.25000000000000006.
    return int(math.ceil(round(1.0 / net_gain_per_win, 9)))


def simulate_accumulator_season(
    avg_win_prob_per_leg: float,
    avg_legs_per_combo: float,
    avg_total_odds: float,
    combos_per_week: float,
    weeks_in_season: float,
) -> SeasonSimulation:
    """Project accumulator results over a season.

    Args:
        avg_win_prob_per_leg: Average probability each leg wins.  Clamped
            to ``[0.01, 0.99]`` before exponentiation.
        avg_legs_per_combo: Average legs per accumulator.
        avg_total_odds: Average combined decimal odds per accumulator.
        combos_per_week: Accumulators placed per week.
        weeks_in_season: Active weeks in the season.

    Returns:
        :class:`SeasonSimulation` with wins/losses and ROI rounded to two
        decimals and the break-even rate to four.

    Examples::

        sim = simulate_accumulator_season(0.8, 3, 2.0, 2, 38)
        sim.expected_wins    → 38.91   (0.512 × 76)
        sim.break_even_rate  → 0.5
        sim.projected_roi    → 2.4
    """
    leg_prob = min(max(avg_win_prob_per_leg, 0.01), 0.99)
    combo_win_prob = leg_prob ** avg_legs_per_combo

    total_combos = combos_per_week * weeks_in_season
    expected_wins = round(combo_win_prob * total_combos, 2)
    expected_losses = round(total_combos - expected_wins, 2)

    # Win (odds − 1) units or lose 1 unit: break-even where p · odds = 1.
    break_even_rate = 1.0 / avg_total_odds if avg_total_odds > 0 else 1.0

    if total_combos > 0:
        total_return = combo_win_prob * total_combos * avg_total_odds
        projected_roi = (total_return - total_combos) / total_combos * 100.0
    else:
        projected_roi = 0.0

    return SeasonSimulation(
        expected_wins=expected_wins,
        expected_losses=expected_losses,
        break_even_rate=round(break_even_rate, 4),
        projected_roi=round(projected_roi, 2),
        max_consecutive_losses=expected_longest_losing_streak(
            total_combos, 1.0 - combo_win_prob
        ),
        recovery_bets_after_loss=recovery_bets(avg_total_odds),
    )
